"""Growth stage mapping from cumulative sun drops."""

from bisect import bisect_right

from seedling.domain.constants import GROWTH_THRESHOLDS, MATURE_STAGE


def growth_stage(cumulative_currency: int) -> int:
    """
    Stage index for the highest threshold not above the currency.

    Stage 0 is a seed; MATURE_STAGE is the cap, beyond which more
    currency has no visual effect.
    """
    return max(0, bisect_right(GROWTH_THRESHOLDS, cumulative_currency) - 1)


def growth_stage_label(stage: int) -> str:
    if stage <= 0:
        return "Seed"
    if stage <= 2:
        return "Sapling"
    if stage <= 5:
        return "Young Tree"
    if stage <= 9:
        return "Mature Tree"
    if stage <= 12:
        return "Grand Tree"
    return "Ancient Tree"


def currency_to_next_stage(cumulative_currency: int) -> int:
    """Sun drops still needed for the next stage; 0 once mature."""
    stage = growth_stage(cumulative_currency)
    if stage >= MATURE_STAGE:
        return 0
    return GROWTH_THRESHOLDS[stage + 1] - max(0, cumulative_currency)
