"""
Store Factory
Centralizes the logic for selecting the chunk record store and wiring the service.
"""

from seedling.application.config import AppConfig
from seedling.application.progress.service import ProgressService
from seedling.domain.progress.ports import ChunkRecordStore
from seedling.infrastructure.adapters.memory_store import InMemoryChunkStore
from seedling.infrastructure.adapters.pocketbase_store import PocketBaseChunkStore
from seedling.infrastructure.adapters.sqlite_store import SqliteChunkStore


def get_chunk_store(config: AppConfig) -> ChunkRecordStore:
    """
    Returns the ChunkRecordStore implementation named by config.backend.
    """
    if config.backend == "memory":
        return InMemoryChunkStore()

    if config.backend == "pocketbase":
        return PocketBaseChunkStore(
            url=config.pocketbase_url,
            collection=config.pocketbase_collection,
            token=config.pocketbase_token,
        )

    return SqliteChunkStore(config.database_path)


def get_progress_service(config: AppConfig) -> ProgressService:
    return ProgressService(
        get_chunk_store(config),
        workers=config.workers,
        conflict_retries=config.conflict_retries,
    )
