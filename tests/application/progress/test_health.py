import random
from datetime import UTC, datetime, timedelta

import pytest

from seedling.application.progress.health import (
    calculate_topic_health,
    days_since,
    gift_buffer_days,
    health_category,
    health_from_elapsed_days,
    needs_refresh,
)
from seedling.domain.progress.models import ChunkRecord, ChunkStatus, GiftType

# --- Topic health (chunk statuses) ---


def test_empty_topic_is_neutral():
    assert calculate_topic_health([]) == 50


def test_all_acquired_is_full_health():
    statuses = [ChunkStatus.ACQUIRED] * 3
    assert calculate_topic_health(statuses) == 100


def test_all_fragile():
    assert calculate_topic_health([ChunkStatus.FRAGILE, ChunkStatus.FRAGILE]) == 30


def test_mean_of_status_points():
    # (40 + 60 + 100 + 30) / 4 = 57.5 -> 58
    statuses = [ChunkStatus.NEW, ChunkStatus.LEARNING, ChunkStatus.ACQUIRED, ChunkStatus.FRAGILE]
    assert calculate_topic_health(statuses) == 58


def test_accepts_records_and_plain_strings():
    records = [
        ChunkRecord(learner_id="kid-1", chunk_id="a", status=ChunkStatus.ACQUIRED),
        ChunkRecord(learner_id="kid-1", chunk_id="b", status=ChunkStatus.LEARNING),
    ]
    assert calculate_topic_health(records) == 80
    assert calculate_topic_health(["learning", "new"]) == 50


def test_topic_health_is_order_independent():
    statuses = [ChunkStatus.NEW] * 3 + [ChunkStatus.ACQUIRED] * 5 + [ChunkStatus.FRAGILE] * 2
    expected = calculate_topic_health(statuses)
    shuffled = statuses[:]
    random.Random(7).shuffle(shuffled)
    assert calculate_topic_health(shuffled) == expected


# --- Freshness decay (elapsed days) ---


@pytest.mark.parametrize(
    "days, expected",
    [
        (0, 100),
        (2, 100),
        (3, 85),
        (5, 85),
        (6, 60),
        (10, 60),
        (11, 35),
        (14, 35),
        (15, 15),
        (21, 15),
        (22, 5),
        (100, 5),
    ],
)
def test_decay_schedule(days, expected):
    assert health_from_elapsed_days(days) == expected


def test_negative_days_clamped():
    assert health_from_elapsed_days(-5) == 100


def test_decay_is_monotonic_and_bounded():
    values = [health_from_elapsed_days(d) for d in range(-10, 60)]
    assert all(a >= b for a, b in zip(values, values[1:]))
    assert all(5 <= v <= 100 for v in values)


def test_decay_is_pure():
    assert health_from_elapsed_days(12) == health_from_elapsed_days(12)


# --- Gift buffer ---


def test_buffer_delays_decay():
    # 12 days with a water drop reads as 2 days
    assert health_from_elapsed_days(12) == 35
    assert health_from_elapsed_days(12, buffer_days=10) == 100
    assert health_from_elapsed_days(20, buffer_days=15) == 85


def test_buffer_larger_than_elapsed_days_is_clamped():
    assert health_from_elapsed_days(3, buffer_days=15) == 100
    assert health_from_elapsed_days(0, buffer_days=-4) == 100
    assert health_from_elapsed_days(8, buffer_days=-4) == health_from_elapsed_days(8)


@pytest.mark.parametrize("buffer", [0, 5, 10, 15, 30])
def test_buffered_decay_is_monotonic_and_bounded(buffer):
    values = [health_from_elapsed_days(d, buffer) for d in range(-10, 80)]
    assert all(a >= b for a, b in zip(values, values[1:]))
    assert all(5 <= v <= 100 for v in values)
    assert all(v >= health_from_elapsed_days(d) for d, v in zip(range(-10, 80), values))


def test_gift_buffer_days():
    assert gift_buffer_days([]) == 0
    assert gift_buffer_days([GiftType.WATER_DROP, GiftType.GOLDEN_FLOWER]) == 25
    assert gift_buffer_days(["water_drop", "sparkle", "ribbon", "seed"]) == 15
    assert gift_buffer_days(["unknown"]) == 0


def test_days_since(now):
    assert days_since(None, now) == 0
    assert days_since(now - timedelta(days=3, hours=5), now) == 3
    assert days_since(now - timedelta(hours=23), now) == 0
    # Clock skew
    assert days_since(now + timedelta(days=2), now) == 0


def test_days_since_treats_naive_as_utc():
    now = datetime(2026, 1, 10, tzinfo=UTC)
    assert days_since(datetime(2026, 1, 3), now) == 7


# --- Categories ---


@pytest.mark.parametrize(
    "score, category",
    [(100, "healthy"), (80, "healthy"), (79, "thirsty"), (40, "thirsty"), (39, "dying"), (5, "dying")],
)
def test_health_category(score, category):
    assert health_category(score) == category


def test_needs_refresh():
    assert needs_refresh(35) is True
    assert needs_refresh(50) is False
