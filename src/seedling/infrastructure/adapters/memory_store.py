"""
In-Memory Chunk Store — Infrastructure adapter for process-local state.

Useful for tests and for the `memory` backend. Nothing survives a restart.
"""

from dataclasses import replace
from datetime import UTC, datetime

from seedling.domain.progress.models import ChunkRecord, ChunkStatus
from seedling.domain.progress.ports import ChunkConflictError, ChunkRecordStore


class InMemoryChunkStore(ChunkRecordStore):
    """
    Keeps records in a dict keyed by (learner_id, chunk_id).

    Writes are compare-and-set on ChunkRecord.version.
    """

    def __init__(self, records: list[ChunkRecord] | None = None):
        self._records: dict[tuple[str, str], ChunkRecord] = {}
        for record in records or []:
            self._records[(record.learner_id, record.chunk_id)] = record

    async def get_chunk(self, learner_id: str, chunk_id: str) -> ChunkRecord | None:
        return self._records.get((learner_id, chunk_id))

    async def put_chunk(self, learner_id: str, chunk_id: str, record: ChunkRecord) -> None:
        key = (learner_id, chunk_id)
        stored = self._records.get(key)
        stored_version = stored.version if stored else 0
        if record.version != stored_version:
            raise ChunkConflictError(
                f"chunk={chunk_id} is at version {stored_version}, write was based on "
                f"{record.version}"
            )
        self._records[key] = replace(
            record, learner_id=learner_id, chunk_id=chunk_id, version=stored_version + 1
        )

    async def list_chunks_by_topic(self, learner_id: str, topic_id: str) -> list[ChunkRecord]:
        return [r for r in self._learner(learner_id) if r.topic_id == topic_id]

    async def list_overdue_chunks(
        self, learner_id: str, now: datetime | None = None
    ) -> list[ChunkRecord]:
        now = now or datetime.now(UTC)
        return [
            r
            for r in self._learner(learner_id)
            if r.status == ChunkStatus.ACQUIRED and r.is_overdue(now)
        ]

    async def list_chunks_by_status(
        self, learner_id: str, status: ChunkStatus, limit: int
    ) -> list[ChunkRecord]:
        return [r for r in self._learner(learner_id) if r.status == status][:limit]

    async def list_due_chunks(
        self, learner_id: str, now: datetime | None = None, limit: int = 10
    ) -> list[ChunkRecord]:
        now = now or datetime.now(UTC)
        due = [r for r in self._learner(learner_id) if r.next_due is not None and r.next_due <= now]
        due.sort(key=lambda r: r.next_due)
        return due[:limit]

    def _learner(self, learner_id: str) -> list[ChunkRecord]:
        return [r for (owner, _), r in self._records.items() if owner == learner_id]
