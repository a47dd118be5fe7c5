"""
Health views for topics and trees.

Two independent health notions live here and are never summed:

- calculate_topic_health: mastery across the chunks beneath a topic.
- health_from_elapsed_days: freshness decay since the last activity, used
  when no chunk-level data is available. Unused gifts buffer the decay.

This is a pure computation module with no I/O.
"""

import math
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Literal

from seedling.domain.constants import (
    DECAY_SCHEDULE,
    DYING_THRESHOLD,
    EMPTY_TOPIC_HEALTH,
    GIFT_BUFFER_DAYS,
    HEALTHY_THRESHOLD,
    MIN_HEALTH,
    NEEDS_REFRESH_THRESHOLD,
    STATUS_HEALTH_POINTS,
)
from seedling.domain.progress.models import ChunkRecord, ChunkStatus, GiftType

HealthCategory = Literal["healthy", "thirsty", "dying"]


def calculate_topic_health(chunks: Iterable[ChunkStatus | ChunkRecord]) -> int:
    """
    Reduce chunk statuses to a 0-100 health score.

    Each status maps to fixed points (new=40, learning=60, acquired=100,
    fragile=30) and the score is their mean, rounded half-up. An empty
    topic scores a neutral 50.

    Args:
        chunks: Statuses, or records carrying a status.
    """
    points = [STATUS_HEALTH_POINTS[ChunkStatus(_status_of(c)).value] for c in chunks]
    if not points:
        return EMPTY_TOPIC_HEALTH
    return math.floor(sum(points) / len(points) + 0.5)


def health_from_elapsed_days(days_since_activity: float, buffer_days: float = 0) -> int:
    """
    Step-function freshness decay.

    buffer_days (from unused gifts) are subtracted before the lookup, so a
    buffer delays decay but never raises health above 100.

    | Days    | Health |
    |---------|--------|
    | <= 2    | 100    |
    | 3-5     | 85     |
    | 6-10    | 60     |
    | 11-14   | 35     |
    | 15-21   | 15     |
    | > 21    | 5      |

    Negative input (clock skew) is treated as 0.
    """
    days = max(0.0, days_since_activity - max(0.0, buffer_days))
    for max_days, health in DECAY_SCHEDULE:
        if days <= max_days:
            return health
    return MIN_HEALTH


def gift_buffer_days(unused_gifts: Iterable[GiftType | str]) -> int:
    """Total decay buffer from gifts not yet applied. Unknown gift types add nothing."""
    return sum(GIFT_BUFFER_DAYS.get(getattr(g, "value", g), 0) for g in unused_gifts)


def days_since(moment: datetime | None, now: datetime | None = None) -> int:
    """
    Whole days elapsed since `moment`, floored.

    Returns 0 for None (nothing to decay yet) and for future timestamps.
    """
    if moment is None:
        return 0
    now = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    elapsed = (now - moment).total_seconds() / 86400
    return max(0, math.floor(elapsed))


def health_category(health: int) -> HealthCategory:
    if health >= HEALTHY_THRESHOLD:
        return "healthy"
    if health >= DYING_THRESHOLD:
        return "thirsty"
    return "dying"


def needs_refresh(health: int) -> bool:
    return health < NEEDS_REFRESH_THRESHOLD


def _status_of(item: ChunkStatus | ChunkRecord) -> ChunkStatus | str:
    return item.status if isinstance(item, ChunkRecord) else item
