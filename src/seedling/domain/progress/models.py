"""
Domain models for learner progress.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Literal

from seedling.domain.constants import (
    INITIAL_CONFIDENCE,
    INITIAL_EASE_FACTOR,
    INITIAL_INTERVAL_DAYS,
)


class ChunkStatus(str, Enum):
    """Acquisition status of a chunk for one learner."""

    NEW = "new"
    LEARNING = "learning"
    ACQUIRED = "acquired"
    FRAGILE = "fragile"


class EncounterOutcome(str, Enum):
    """Coarse result of a single encounter with a chunk."""

    CORRECT_UNAIDED = "correct-unaided"
    CORRECT_AIDED = "correct-aided"
    INCORRECT = "incorrect"


class GiftType(str, Enum):
    """Gifts a tree can receive. Unused ones delay freshness decay."""

    WATER_DROP = "water_drop"
    SPARKLE = "sparkle"
    SEED = "seed"
    RIBBON = "ribbon"
    GOLDEN_FLOWER = "golden_flower"


@dataclass(frozen=True)
class ChunkRecord:
    """
    Per-learner scheduling state for one chunk.

    Attributes:
        learner_id: Owning learner.
        chunk_id: The learnable unit (word, phrase or grammar point).
        topic_id: Owning topic/skill path, None when not yet known.
        status: Current acquisition status.
        ease_factor: SM-2 multiplier, kept within [1.3, 3.0].
        interval: Whole days until the next review, kept within [1, 180].
        repetitions: Consecutive successful reviews since the last reset.
        last_reviewed: Aware UTC timestamp of the last encounter.
        version: Optimistic-concurrency token, owned by the store.
    """

    learner_id: str
    chunk_id: str
    topic_id: str | None = None
    status: ChunkStatus = ChunkStatus.NEW
    ease_factor: float = INITIAL_EASE_FACTOR
    interval: int = INITIAL_INTERVAL_DAYS
    repetitions: int = 0
    last_reviewed: datetime | None = None

    # Encounter history
    total_encounters: int = 0
    correct_first_try: int = 0
    wrong_attempts: int = 0
    help_used_count: int = 0
    confidence_score: float = INITIAL_CONFIDENCE

    version: int = 0

    @property
    def next_due(self) -> datetime | None:
        """Next scheduled review; None until the chunk has been reviewed once."""
        if self.last_reviewed is None:
            return None
        return self.last_reviewed + timedelta(days=self.interval)

    def is_overdue(self, now: datetime) -> bool:
        due = self.next_due
        return due is not None and due < now


@dataclass
class BatchEncounterResult:
    """
    Summary of one session's batch of encounters.

    Attributes:
        updated: Chunk records successfully persisted.
        failed: Chunk records that could not be read or written.
        graduated: Chunk ids that moved to acquired this session.
        became_fragile: Chunk ids that moved to fragile this session.
        created: Chunk ids seen for the first time (implicitly created).
    """

    updated: int = 0
    failed: int = 0
    graduated: list[str] = field(default_factory=list)
    became_fragile: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TopicSnapshot:
    """Display numbers for a topic/tree, computed on read and never stored."""

    topic_id: str
    health: int
    health_category: str
    chunk_count: int
    growth_stage: int
    growth_label: str
    currency_to_next_stage: int


# Lesson star rating: 3 = answered well, 2 = needed help, 1 = struggled
QualityRating = Literal[1, 2, 3]

RATING_OUTCOMES: dict[int, EncounterOutcome] = {
    3: EncounterOutcome.CORRECT_UNAIDED,
    2: EncounterOutcome.CORRECT_AIDED,
    1: EncounterOutcome.INCORRECT,
}
