"""
SQLite Chunk Store — Infrastructure adapter for a local SQLite database.

Implements ChunkRecordStore on SQLAlchemy's async engine (aiosqlite driver).
Each write is a single-row transaction guarded by the record version, so two
sessions updating the same chunk cannot silently overwrite each other.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from seedling.domain.progress.models import ChunkRecord, ChunkStatus
from seedling.domain.progress.ports import (
    ChunkConflictError,
    ChunkRecordStore,
    ChunkStoreError,
)

from .sqlite_models import Base, ChunkRow

logger = logging.getLogger(__name__)


class SqliteChunkStore(ChunkRecordStore):
    """
    Stores chunk records in a SQLite file.

    The engine is created, and the schema ensured, on first use. Call
    close() to dispose of pooled connections.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None
        self._init_lock = asyncio.Lock()

    async def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        async with self._init_lock:
            if self._sessions is not None:
                return self._sessions
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ChunkStoreError(f"Could not open {self.db_path}: {e}") from e

            engine = create_async_engine(f"sqlite+aiosqlite:///{self.db_path}")
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except SQLAlchemyError as e:
                await engine.dispose()
                raise ChunkStoreError(f"Could not open {self.db_path}: {e}") from e

            logger.debug(f"SQLite chunk store ready at {self.db_path}")
            self._engine = engine
            self._sessions = async_sessionmaker(engine, expire_on_commit=False)
            return self._sessions

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[AsyncSession]:
        """Transactional scope: commit on success, roll back on any database error."""
        factory = await self._session_factory()
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise ChunkStoreError(f"SQLite error: {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None

    # ------------------------------------------------------------------
    # Port implementation
    # ------------------------------------------------------------------

    async def get_chunk(self, learner_id: str, chunk_id: str) -> ChunkRecord | None:
        records = await self._query(
            select(ChunkRow).where(
                ChunkRow.learner_id == learner_id, ChunkRow.chunk_id == chunk_id
            )
        )
        return records[0] if records else None

    async def put_chunk(self, learner_id: str, chunk_id: str, record: ChunkRecord) -> None:
        values = _record_to_values(record)
        async with self._session_scope() as session:
            if record.version == 0:
                try:
                    await session.execute(
                        insert(ChunkRow).values(
                            learner_id=learner_id, chunk_id=chunk_id, version=1, **values
                        )
                    )
                except IntegrityError as e:
                    raise ChunkConflictError(f"chunk={chunk_id} was created concurrently") from e
            else:
                result = await session.execute(
                    update(ChunkRow)
                    .where(
                        ChunkRow.learner_id == learner_id,
                        ChunkRow.chunk_id == chunk_id,
                        ChunkRow.version == record.version,
                    )
                    .values(version=ChunkRow.version + 1, **values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ChunkConflictError(
                        f"chunk={chunk_id} changed since version {record.version}"
                    )
        logger.debug(f"Stored chunk={chunk_id} for learner={learner_id}")

    async def list_chunks_by_topic(self, learner_id: str, topic_id: str) -> list[ChunkRecord]:
        return await self._query(
            select(ChunkRow).where(
                ChunkRow.learner_id == learner_id, ChunkRow.topic_id == topic_id
            )
        )

    async def list_overdue_chunks(
        self, learner_id: str, now: datetime | None = None
    ) -> list[ChunkRecord]:
        now = now or datetime.now(UTC)
        return await self._query(
            select(ChunkRow).where(
                ChunkRow.learner_id == learner_id,
                ChunkRow.status == ChunkStatus.ACQUIRED.value,
                ChunkRow.next_due.is_not(None),
                ChunkRow.next_due < _to_db(now),
            )
        )

    async def list_chunks_by_status(
        self, learner_id: str, status: ChunkStatus, limit: int
    ) -> list[ChunkRecord]:
        return await self._query(
            select(ChunkRow)
            .where(
                ChunkRow.learner_id == learner_id,
                ChunkRow.status == ChunkStatus(status).value,
            )
            .order_by(ChunkRow.next_due)
            .limit(limit)
        )

    async def list_due_chunks(
        self, learner_id: str, now: datetime | None = None, limit: int = 10
    ) -> list[ChunkRecord]:
        now = now or datetime.now(UTC)
        return await self._query(
            select(ChunkRow)
            .where(
                ChunkRow.learner_id == learner_id,
                ChunkRow.next_due.is_not(None),
                ChunkRow.next_due <= _to_db(now),
            )
            .order_by(ChunkRow.next_due)
            .limit(limit)
        )

    async def _query(self, stmt) -> list[ChunkRecord]:
        async with self._session_scope() as session:
            rows = (await session.scalars(stmt)).all()
            return [_row_to_record(row) for row in rows]


def _to_db(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(UTC).replace(tzinfo=None)


def _from_db(moment: datetime | None) -> datetime | None:
    return moment.replace(tzinfo=UTC) if moment is not None else None


def _record_to_values(record: ChunkRecord) -> dict[str, Any]:
    return {
        "topic_id": record.topic_id,
        "status": ChunkStatus(record.status).value,
        "ease_factor": record.ease_factor,
        "interval": record.interval,
        "repetitions": record.repetitions,
        "last_reviewed": _to_db(record.last_reviewed),
        "next_due": _to_db(record.next_due),
        "total_encounters": record.total_encounters,
        "correct_first_try": record.correct_first_try,
        "wrong_attempts": record.wrong_attempts,
        "help_used_count": record.help_used_count,
        "confidence_score": record.confidence_score,
    }


def _row_to_record(row: ChunkRow) -> ChunkRecord:
    return ChunkRecord(
        learner_id=row.learner_id,
        chunk_id=row.chunk_id,
        topic_id=row.topic_id,
        status=ChunkStatus(row.status),
        ease_factor=row.ease_factor,
        interval=row.interval,
        repetitions=row.repetitions,
        last_reviewed=_from_db(row.last_reviewed),
        total_encounters=row.total_encounters,
        correct_first_try=row.correct_first_try,
        wrong_attempts=row.wrong_attempts,
        help_used_count=row.help_used_count,
        confidence_score=row.confidence_score,
        version=row.version,
    )
