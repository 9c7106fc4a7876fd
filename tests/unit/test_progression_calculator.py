"""
Unit tests for the progression calculator.

Covers XP -> level lookup (linear and binary agree, maximality) and
progress inside a level band.
"""

import pytest

from rpg_social.modules.levels.table import build_default_levels
from rpg_social.modules.progression.calculator import (
    compute_progression,
    find_level_binary,
    find_level_linear,
    progress_ratio,
)

SMALL = (0, 100, 300, 600, 1000)
DEFAULT = tuple(entry.xp_required for entry in build_default_levels())


@pytest.mark.unit
class TestLevelLookup:
    """XP to level resolution."""

    @pytest.mark.parametrize(
        "xp, expected",
        [(0, 1), (99, 1), (100, 2), (299, 2), (300, 3), (999, 4), (1000, 5), (10**9, 5)],
    )
    def test_small_table(self, xp, expected):
        assert find_level_binary(SMALL, xp) == expected
        assert find_level_linear(SMALL, xp) == expected

    def test_linear_and_binary_agree_on_default_curve(self):
        """Both searches return the same level around every threshold."""
        probes = set()
        for required in DEFAULT:
            probes.update({required - 1, required, required + 1})

        for xp in sorted(p for p in probes if p >= 0):
            assert find_level_linear(DEFAULT, xp) == find_level_binary(DEFAULT, xp)

    def test_result_is_maximal(self):
        """Chosen level is reachable and the next one is not."""
        for xp in range(0, DEFAULT[30], 997):
            level = find_level_binary(DEFAULT, xp)

            assert DEFAULT[level - 1] <= xp
            if level < len(DEFAULT):
                assert DEFAULT[level] > xp

    def test_negative_xp_clamps_to_level_one(self):
        assert find_level_binary(SMALL, -50) == 1
        assert find_level_linear(SMALL, -50) == 1


@pytest.mark.unit
class TestProgression:
    """Progress toward the next level."""

    def test_mid_band(self):
        snapshot = compute_progression(SMALL, 2, 150)

        assert snapshot.current_level == 2
        assert snapshot.next_level == 3
        assert snapshot.xp_into_level == 50
        assert snapshot.xp_for_next == 150
        assert snapshot.percent == 25.0
        assert snapshot.is_max_level is False

    def test_band_start_is_zero_percent(self):
        assert compute_progression(SMALL, 3, 300).percent == 0.0

    def test_max_level_is_pinned_to_100(self):
        snapshot = compute_progression(SMALL, 5, 4000)

        assert snapshot.is_max_level is True
        assert snapshot.next_level is None
        assert snapshot.xp_for_next is None
        assert snapshot.percent == 100.0

    def test_percent_is_monotonic_within_band(self):
        """More XP inside the same band never lowers the percentage."""
        previous = -1.0
        for xp in range(100, 300):
            percent = compute_progression(SMALL, 2, xp).percent
            assert percent >= previous
            previous = percent

    def test_crossing_thresholds_moves_one_level_each(self):
        levels = [find_level_binary(SMALL, xp) for xp in (99, 100, 299, 300, 599, 600)]
        assert levels == [1, 2, 2, 3, 3, 4]

    def test_level_out_of_range_is_clamped(self):
        assert compute_progression(SMALL, 0, 50).current_level == 1
        assert compute_progression(SMALL, 42, 50).current_level == 5

    def test_percent_rounded_to_two_decimals(self):
        # 1 / 3 of the 300 -> 600 band
        assert compute_progression(SMALL, 3, 400).percent == 33.33

    def test_empty_thresholds_rejected(self):
        with pytest.raises(ValueError):
            compute_progression((), 1, 0)

    def test_to_dict_keys(self):
        data = compute_progression(SMALL, 1, 10).to_dict()
        assert set(data) == {
            "current_level",
            "next_level",
            "xp",
            "xp_into_level",
            "xp_for_next",
            "percent",
            "is_max_level",
        }

    def test_progress_ratio_bounds(self):
        assert progress_ratio(-5, 100) == 0.0
        assert progress_ratio(500, 100) == 100.0
        assert progress_ratio(10, 0) == 100.0
