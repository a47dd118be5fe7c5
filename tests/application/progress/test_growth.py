import pytest

from seedling.application.progress.growth import (
    currency_to_next_stage,
    growth_stage,
    growth_stage_label,
)


@pytest.mark.parametrize(
    "currency, stage",
    [(0, 0), (9, 0), (10, 1), (24, 1), (25, 2), (100, 5), (899, 13), (900, 14), (50_000, 14)],
)
def test_growth_stage_thresholds(currency, stage):
    assert growth_stage(currency) == stage


def test_negative_currency_is_a_seed():
    assert growth_stage(-20) == 0


def test_growth_stage_is_monotonic():
    stages = [growth_stage(c) for c in range(0, 1200, 3)]
    assert stages == sorted(stages)
    assert stages[-1] == 14


def test_growth_stage_labels():
    assert growth_stage_label(0) == "Seed"
    assert growth_stage_label(2) == "Sapling"
    assert growth_stage_label(5) == "Young Tree"
    assert growth_stage_label(9) == "Mature Tree"
    assert growth_stage_label(12) == "Grand Tree"
    assert growth_stage_label(14) == "Ancient Tree"


def test_currency_to_next_stage():
    assert currency_to_next_stage(0) == 10
    assert currency_to_next_stage(30) == 15
    assert currency_to_next_stage(900) == 0
    assert currency_to_next_stage(2000) == 0
