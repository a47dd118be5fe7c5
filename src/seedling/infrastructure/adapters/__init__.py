# Infrastructure Store Adapters Package
from .memory_store import InMemoryChunkStore
from .pocketbase_store import PocketBaseChunkStore
from .sqlite_store import SqliteChunkStore

__all__ = ["InMemoryChunkStore", "SqliteChunkStore", "PocketBaseChunkStore"]
