"""Centralized constants for the seedling progress engine.

All magic numbers and tuning tables live here so every layer
imports from a single source of truth.
"""

# ---------- SM-2 Scheduling ----------
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 3.0
INITIAL_EASE_FACTOR = 2.5
MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 180
INITIAL_INTERVAL_DAYS = 1

INCORRECT_EASE_PENALTY = 0.3
AIDED_EASE_PENALTY = 0.1
UNAIDED_EASE_BONUS = 0.1
AIDED_INTERVAL_MULTIPLIER = 1.2

# Fixed early steps of the SM-2 ladder, indexed by prior repetition count
LEARNING_STEPS_DAYS = (1, 3)

GRADUATION_REPETITIONS = 3
GRADUATION_EASE = 2.0

# ---------- Confidence ----------
INITIAL_CONFIDENCE = 0.5
HELP_PENALTY_PER_USE = 0.05
MAX_HELP_PENALTY = 0.2

# ---------- Topic Health ----------
EMPTY_TOPIC_HEALTH = 50
STATUS_HEALTH_POINTS = {
    "new": 40,
    "learning": 60,
    "acquired": 100,
    "fragile": 30,
}
HEALTHY_THRESHOLD = 80
NEEDS_REFRESH_THRESHOLD = 50
DYING_THRESHOLD = 40

# ---------- Freshness Decay ----------
# (max elapsed days, health) pairs, checked in order
DECAY_SCHEDULE = (
    (2, 100),
    (5, 85),
    (10, 60),
    (14, 35),
    (21, 15),
)
MIN_HEALTH = 5

# Days of decay held off by each unused gift, keyed by gift type
GIFT_BUFFER_DAYS = {
    "water_drop": 10,
    "sparkle": 5,
    "seed": 0,
    "ribbon": 0,
    "golden_flower": 15,
}

# ---------- Growth ----------
GROWTH_THRESHOLDS = (0, 10, 25, 45, 70, 100, 140, 190, 250, 320, 400, 500, 620, 750, 900)
MATURE_STAGE = len(GROWTH_THRESHOLDS) - 1

# ---------- Service ----------
DEFAULT_WORKERS = 4
DEFAULT_CONFLICT_RETRIES = 2
DEFAULT_DUE_LIMIT = 10
DEFAULT_FRAGILE_LIMIT = 5

# ---------- PocketBase / HTTP ----------
REQUEST_TIMEOUT = 30.0
POCKETBASE_PAGE_SIZE = 200
