"""
Unit tests for progression display formulas.
"""

import pytest

from rpg_social.modules.progression.formulas import (
    format_xp,
    next_milestone,
    tier_for_level,
    tier_index_for_level,
    tier_progress_percent,
)
from rpg_social.modules.shared.constants import DEFAULT_TIERS


@pytest.mark.unit
class TestFormatXp:
    @pytest.mark.parametrize(
        "xp, expected",
        [(0, "0"), (999, "999"), (1000, "1.0K"), (1234, "1.2K"), (3_400_000, "3.4M")],
    )
    def test_labels(self, xp, expected):
        assert format_xp(xp) == expected


@pytest.mark.unit
class TestMilestones:
    @pytest.mark.parametrize(
        "level, expected",
        [(1, 10), (9, 10), (10, 20), (17, 20), (95, 100), (100, 100)],
    )
    def test_next_milestone(self, level, expected):
        assert next_milestone(level) == expected

    def test_capped_by_small_table(self):
        assert next_milestone(2, interval=10, max_level=5) == 5


@pytest.mark.unit
class TestTiers:
    def test_tier_index(self):
        assert tier_index_for_level(1) == 0
        assert tier_index_for_level(10) == 0
        assert tier_index_for_level(11) == 1

    def test_tier_for_level(self):
        assert tier_for_level(15, DEFAULT_TIERS)["name"] == "Novice"

    def test_levels_past_last_tier_stay_in_last(self):
        assert tier_for_level(250, DEFAULT_TIERS)["name"] == "Divine"

    def test_tier_for_level_requires_tiers(self):
        with pytest.raises(ValueError):
            tier_for_level(1, [])

    @pytest.mark.parametrize("level, expected", [(1, 10.0), (5, 50.0), (10, 100.0), (11, 10.0)])
    def test_tier_progress(self, level, expected):
        assert tier_progress_percent(level) == expected
