# Application Progress Package
from .growth import currency_to_next_stage, growth_stage, growth_stage_label
from .health import (
    calculate_topic_health,
    days_since,
    gift_buffer_days,
    health_category,
    health_from_elapsed_days,
    needs_refresh,
)
from .scheduler import calculate_next_review, new_chunk_record
from .service import ProgressService, outcome_for_rating

__all__ = [
    "calculate_next_review",
    "new_chunk_record",
    "calculate_topic_health",
    "health_from_elapsed_days",
    "gift_buffer_days",
    "health_category",
    "needs_refresh",
    "days_since",
    "growth_stage",
    "growth_stage_label",
    "currency_to_next_stage",
    "ProgressService",
    "outcome_for_rating",
]
