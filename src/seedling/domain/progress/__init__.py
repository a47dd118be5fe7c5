# Domain Progress Package
from .models import (
    RATING_OUTCOMES,
    BatchEncounterResult,
    ChunkRecord,
    ChunkStatus,
    EncounterOutcome,
    GiftType,
    QualityRating,
    TopicSnapshot,
)
from .ports import ChunkConflictError, ChunkRecordStore, ChunkStoreError

__all__ = [
    "ChunkStatus",
    "EncounterOutcome",
    "GiftType",
    "ChunkRecord",
    "BatchEncounterResult",
    "TopicSnapshot",
    "QualityRating",
    "RATING_OUTCOMES",
    "ChunkRecordStore",
    "ChunkStoreError",
    "ChunkConflictError",
]
