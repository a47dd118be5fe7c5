"""
Ports (interfaces) for chunk record storage.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import ChunkRecord, ChunkStatus


class ChunkStoreError(Exception):
    """The store could not complete a read or write."""


class ChunkConflictError(ChunkStoreError):
    """A write lost an optimistic-concurrency race against another update."""


class ChunkRecordStore(ABC):
    """
    Port for durable per-learner chunk state.

    Implementations:
        - InMemoryChunkStore: process-local dict, for tests and ephemeral runs.
        - SqliteChunkStore: local SQLite database.
        - PocketBaseChunkStore: PocketBase REST API (last-write-wins).

    Failures are raised as ChunkStoreError. A missing record is not a failure.
    """

    @abstractmethod
    async def get_chunk(self, learner_id: str, chunk_id: str) -> ChunkRecord | None:
        """
        Fetch a learner's record for one chunk.

        Returns:
            The record, or None if the learner has never encountered the chunk.
        """
        pass

    @abstractmethod
    async def put_chunk(self, learner_id: str, chunk_id: str, record: ChunkRecord) -> None:
        """
        Persist a record atomically.

        record.version must be the version the record was read at (0 for a
        record that does not exist yet). Stores that support optimistic
        concurrency raise ChunkConflictError when it no longer matches.
        """
        pass

    @abstractmethod
    async def list_chunks_by_topic(self, learner_id: str, topic_id: str) -> list[ChunkRecord]:
        """All of a learner's records under one topic."""
        pass

    @abstractmethod
    async def list_overdue_chunks(
        self, learner_id: str, now: datetime | None = None
    ) -> list[ChunkRecord]:
        """Acquired records whose next-due timestamp is before now."""
        pass

    @abstractmethod
    async def list_chunks_by_status(
        self, learner_id: str, status: ChunkStatus, limit: int
    ) -> list[ChunkRecord]:
        """Up to `limit` records with the given status."""
        pass

    @abstractmethod
    async def list_due_chunks(
        self, learner_id: str, now: datetime | None = None, limit: int = 10
    ) -> list[ChunkRecord]:
        """
        Reviewed records whose next-due timestamp has passed.

        Returns:
            Up to `limit` records, most overdue first.
        """
        pass

    async def close(self) -> None:
        """Release connections or clients held by the store. Safe to call twice."""
        return None
