"""
Unit tests for LevelTable validation and the default level curve.
"""

import pytest

from rpg_social.modules.levels.table import (
    LevelEntry,
    LevelTable,
    build_default_levels,
    xp_required_for,
)
from rpg_social.modules.shared.constants import DEFAULT_TIERS
from rpg_social.modules.shared.exceptions import ValidationError
from tests.conftest import build_test_levels


def _entry(level, xp_required, tier="Beginner"):
    return LevelEntry(level=level, xp_required=xp_required, tier=tier, title=f"L{level}")


@pytest.mark.unit
class TestLevelTableValidation:
    """Construction rejects malformed catalogs."""

    def test_empty_table(self):
        with pytest.raises(ValidationError):
            LevelTable([])

    def test_must_start_at_level_one(self):
        with pytest.raises(ValidationError, match="start at 1"):
            LevelTable([_entry(2, 0), _entry(3, 100)])

    def test_level_one_requires_zero_xp(self):
        with pytest.raises(ValidationError, match="0 XP"):
            LevelTable([_entry(1, 10), _entry(2, 100)])

    def test_levels_must_be_contiguous(self):
        with pytest.raises(ValidationError, match="contiguous"):
            LevelTable([_entry(1, 0), _entry(3, 100)])

    def test_thresholds_must_strictly_increase(self):
        with pytest.raises(ValidationError, match="strictly increase"):
            LevelTable([_entry(1, 0), _entry(2, 100), _entry(3, 100)])

    def test_unordered_input_is_sorted(self):
        table = LevelTable([_entry(2, 100), _entry(1, 0)])
        assert [entry.level for entry in table] == [1, 2]


@pytest.mark.unit
class TestLevelTableLookups:
    """Lookups over the small test table."""

    @pytest.fixture
    def table(self):
        return LevelTable(build_test_levels())

    def test_get_level_by_xp(self, table):
        assert table.get_level_by_xp(299).level == 2
        assert table.get_level_by_xp(300).title == "Contributor"

    def test_get_out_of_range(self, table):
        assert table.get(0) is None
        assert table.get(6) is None
        assert table.get(5).title == "Pathfinder"

    def test_by_tier_is_case_insensitive(self, table):
        assert [entry.level for entry in table.by_tier("novice")] == [4, 5]
        assert table.by_tier("Mythic") == []

    def test_tiers_in_order(self, table):
        assert table.tiers() == ["Beginner", "Novice"]

    def test_rewards_between_is_half_open(self, table):
        rewards = table.rewards_between(2, 5)

        assert [reward["level"] for reward in rewards] == [3, 5]
        assert rewards[0]["unlocked_features"] == ["post_creation"]
        assert rewards[1]["badges"][0]["id"] == "novice_master_5"

    def test_rewards_between_excludes_old_level(self, table):
        assert table.rewards_between(3, 4) == []

    def test_upcoming_rewards_limit(self, table):
        assert len(table.upcoming_rewards(1, window=10, limit=1)) == 1


@pytest.mark.unit
class TestDefaultCurve:
    """Generated default catalog."""

    @pytest.fixture
    def entries(self):
        return build_default_levels()

    def test_one_hundred_valid_levels(self, entries):
        table = LevelTable(entries)

        assert table.max_level == 100
        assert table.get(1).xp_required == 0

    def test_thresholds_follow_exponential_curve(self, entries):
        for entry in entries[1:]:
            assert entry.xp_required == xp_required_for(entry.level)

    def test_xp_to_next_matches_gap(self, entries):
        for current, following in zip(entries, entries[1:]):
            assert current.xp_to_next == following.xp_required - current.xp_required
        assert entries[-1].xp_to_next == 0

    def test_ten_levels_per_tier(self, entries):
        tier_names = [tier["name"] for tier in DEFAULT_TIERS]

        assert entries[0].tier == tier_names[0]
        assert entries[9].tier == tier_names[0]
        assert entries[10].tier == tier_names[1]
        assert entries[99].tier == tier_names[-1]

    def test_master_badge_every_tenth_level(self, entries):
        badged = [entry.level for entry in entries if entry.badges]

        assert badged == list(range(10, 101, 10))
        assert entries[9].badges[0]["id"] == "beginner_master_10"
        assert entries[9].badges[0]["name"] == "Beginner Master"

    def test_feature_unlocks_attached(self, entries):
        assert entries[4].unlocked_features == ("post_creation",)
        assert entries[99].unlocked_features == ("ultimate_mastery",)

    def test_custom_curve(self):
        entries = build_default_levels(max_level=3, base=50, growth=2.0)
        assert [entry.xp_required for entry in entries] == [0, 100, 200]
