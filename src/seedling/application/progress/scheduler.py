"""
SM-2 derived scheduler for chunk reviews.

This is a pure computation module with no I/O.

Three coarse outcome tiers drive the update:

- incorrect:       ease -0.3, interval reset to 1 day, repetitions reset,
                   acquired chunks become fragile.
- correct-aided:   ease -0.1, interval x 1.2, repetitions unchanged,
                   never graduates.
- correct-unaided: classic SM-2 ladder (1 day, 3 days, then interval x ease),
                   graduates after 3 clean reviews with ease >= 2.0.
"""

import math
from dataclasses import replace
from datetime import UTC, datetime

from seedling.domain.constants import (
    AIDED_EASE_PENALTY,
    AIDED_INTERVAL_MULTIPLIER,
    GRADUATION_EASE,
    GRADUATION_REPETITIONS,
    HELP_PENALTY_PER_USE,
    INCORRECT_EASE_PENALTY,
    INITIAL_CONFIDENCE,
    LEARNING_STEPS_DAYS,
    MAX_EASE_FACTOR,
    MAX_HELP_PENALTY,
    MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
    MIN_INTERVAL_DAYS,
    UNAIDED_EASE_BONUS,
)
from seedling.domain.progress.models import ChunkRecord, ChunkStatus, EncounterOutcome


def new_chunk_record(
    learner_id: str, chunk_id: str, topic_id: str | None = None
) -> ChunkRecord:
    """Initial record for a chunk the learner has never encountered."""
    return ChunkRecord(learner_id=learner_id, chunk_id=chunk_id, topic_id=topic_id)


def calculate_next_review(
    chunk: ChunkRecord,
    outcome: EncounterOutcome,
    now: datetime | None = None,
) -> ChunkRecord:
    """
    Calculate the next scheduling state for a chunk after one encounter.

    Stored values that are out of range (e.g. a corrupted ease factor) are
    clamped before use, never rejected.

    Args:
        chunk: Current record.
        outcome: Result of this encounter.
        now: Review time; defaults to the current UTC time.

    Returns:
        A new ChunkRecord. The input is not modified.
    """
    now = now or datetime.now(UTC)
    ease = clamp_ease(chunk.ease_factor)
    interval = clamp_interval(chunk.interval)
    reps = max(0, chunk.repetitions)
    status = ChunkStatus(chunk.status)

    if outcome is EncounterOutcome.INCORRECT:
        new_ease = clamp_ease(ease - INCORRECT_EASE_PENALTY)
        new_interval = MIN_INTERVAL_DAYS
        new_reps = 0
        if status is ChunkStatus.ACQUIRED:
            new_status = ChunkStatus.FRAGILE
        elif status is ChunkStatus.NEW:
            new_status = ChunkStatus.LEARNING
        else:
            new_status = status

    elif outcome is EncounterOutcome.CORRECT_AIDED:
        new_ease = clamp_ease(ease - AIDED_EASE_PENALTY)
        new_interval = clamp_interval(_round_days(interval * AIDED_INTERVAL_MULTIPLIER))
        new_reps = reps
        # No graduation on a helped answer
        new_status = ChunkStatus.LEARNING if status is ChunkStatus.NEW else status

    else:
        if reps < len(LEARNING_STEPS_DAYS):
            new_ease = ease
            new_interval = LEARNING_STEPS_DAYS[reps]
        else:
            new_ease = clamp_ease(ease + UNAIDED_EASE_BONUS)
            new_interval = clamp_interval(_round_days(interval * ease))
        new_reps = reps + 1

        graduates = new_reps >= GRADUATION_REPETITIONS and new_ease >= GRADUATION_EASE
        if status is ChunkStatus.NEW:
            new_status = ChunkStatus.LEARNING
        elif status in (ChunkStatus.LEARNING, ChunkStatus.FRAGILE) and graduates:
            new_status = ChunkStatus.ACQUIRED
        else:
            new_status = status

    total = max(0, chunk.total_encounters) + 1
    correct_first_try = max(0, chunk.correct_first_try) + (
        1 if outcome is EncounterOutcome.CORRECT_UNAIDED else 0
    )
    wrong_attempts = max(0, chunk.wrong_attempts) + (
        1 if outcome is EncounterOutcome.INCORRECT else 0
    )
    help_used = max(0, chunk.help_used_count) + (
        1 if outcome is EncounterOutcome.CORRECT_AIDED else 0
    )

    return replace(
        chunk,
        status=new_status,
        ease_factor=new_ease,
        interval=new_interval,
        repetitions=new_reps,
        last_reviewed=now,
        total_encounters=total,
        correct_first_try=correct_first_try,
        wrong_attempts=wrong_attempts,
        help_used_count=help_used,
        confidence_score=calculate_confidence(correct_first_try, total, help_used),
    )


def calculate_confidence(correct_first_try: int, total_encounters: int, help_used: int) -> float:
    """
    Derived confidence (0-1): first-try accuracy minus a capped help penalty.
    """
    if total_encounters <= 0:
        return INITIAL_CONFIDENCE
    correct_rate = correct_first_try / total_encounters
    help_penalty = min(MAX_HELP_PENALTY, help_used * HELP_PENALTY_PER_USE)
    return max(0.0, min(1.0, correct_rate - help_penalty))


def clamp_ease(value: float) -> float:
    # Rounded to kill float drift from repeated +/-0.1 steps
    return round(max(MIN_EASE_FACTOR, min(MAX_EASE_FACTOR, value)), 4)


def clamp_interval(days: float) -> int:
    return int(max(MIN_INTERVAL_DAYS, min(MAX_INTERVAL_DAYS, _round_days(days))))


def _round_days(value: float) -> int:
    """Round half-up to a whole day."""
    return math.floor(value + 0.5)
