"""
Integration Tests for XpAwardService
====================================

Runs XP awards against SQLite with the five-level test table
(thresholds 0, 100, 300, 600, 1000).

Test Coverage
-------------
- Level-up detection and level history
- Non-positive amounts leave the record untouched
- Input validation and unknown users
- Level badges and unlocked features on level-up
- Concurrent awards never lose an update
- Configured action rewards
"""

import asyncio

import pytest

from rpg_social.modules.shared.exceptions import NotFoundError, ValidationError
from tests.conftest import build_test_levels, published_events


# ============================================================================
# LEVELING
# ============================================================================


@pytest.mark.integration
class TestAwardXp:
    """Applying XP and recomputing the cached level."""

    async def test_level_up_then_same_level(self, container, user):
        """0 -> 100 reaches level 2; another 50 stays on level 2."""
        # Act
        first = await container.xp.award_xp(user["user_id"], 100, reason="quest")
        second = await container.xp.award_xp(user["user_id"], 50, reason="quest")

        # Assert
        assert (first["xp"], first["level"], first["leveled_up"]) == (100, 2, True)
        assert (second["xp"], second["level"], second["leveled_up"]) == (150, 2, False)

        stored = await container.users.get_user(user["user_id"])
        assert stored["xp"] == 150
        assert stored["level"] == 2
        assert stored["total_xp_gained"] == 150

    async def test_level_history_recorded(self, container, user):
        await container.xp.award_xp(user["user_id"], 350, reason="post_created")

        stored = await container.users.get_user(user["user_id"])

        assert len(stored["level_history"]) == 1
        entry = stored["level_history"][0]
        assert entry["level"] == 3
        assert entry["xp_at_achievement"] == 350
        assert entry["reason"] == "post_created"

    async def test_multi_level_jump_reports_rewards(self, container, user, mock_event_bus):
        result = await container.xp.award_xp(user["user_id"], 1000, reason="migration")

        assert result["old_level"] == 1
        assert result["level"] == 5
        assert [reward["level"] for reward in result["unlocked_rewards"]] == [3, 5]
        assert [badge["id"] for badge in result["badges_granted"]] == ["novice_master_5"]

        leveled = published_events(mock_event_bus, "player.leveled_up")
        assert leveled[0]["levels_gained"] == 4

        unlocked = published_events(mock_event_bus, "badge.unlocked")
        assert unlocked[0]["source"] == "level_up"
        assert unlocked[0]["badge"]["id"] == "novice_master_5"

    async def test_xp_beyond_table_stays_at_max_level(self, container, user):
        result = await container.xp.award_xp(user["user_id"], 50_000, reason="bulk")

        assert result["level"] == 5
        assert result["xp"] == 50_000

    async def test_level_badge_granted_once(self, container, user):
        await container.xp.award_xp(user["user_id"], 1000, reason="a")
        second = await container.xp.award_xp(user["user_id"], 10, reason="b")

        assert second["badges_granted"] == []
        assert len(await container.badges.list_badges(user["user_id"])) == 1

    async def test_events_published_after_award(self, container, user, mock_event_bus):
        await container.xp.award_xp(user["user_id"], 40, reason="comment_created")

        awarded = published_events(mock_event_bus, "player.xp_awarded")
        assert awarded == [
            {
                "user_id": user["user_id"],
                "amount": 40,
                "old_xp": 0,
                "new_xp": 40,
                "level": 1,
                "reason": "comment_created",
            }
        ]
        assert published_events(mock_event_bus, "player.leveled_up") == []

    async def test_award_after_reseeding_shorter_table(self, container, user):
        """Awards use only the levels of the latest seed."""
        # Arrange
        await container.levels.seed_levels()
        await container.levels.seed_levels(build_test_levels()[:3])

        # Act
        result = await container.xp.award_xp(user["user_id"], 150, reason="quest")
        capped = await container.xp.award_xp(user["user_id"], 5000, reason="quest")

        # Assert
        assert (result["xp"], result["level"]) == (150, 2)
        assert capped["level"] == 3


# ============================================================================
# NO-OPS AND ERRORS
# ============================================================================


@pytest.mark.integration
class TestAwardXpEdgeCases:
    @pytest.mark.parametrize("amount", [0, -25])
    async def test_non_positive_amount_changes_nothing(self, container, user, mock_event_bus, amount):
        await container.xp.award_xp(user["user_id"], 120, reason="seed")

        result = await container.xp.award_xp(user["user_id"], amount, reason="noop")

        assert result["applied"] is False
        assert result["xp"] == 120
        assert result["xp_gained"] == 0
        assert (await container.users.get_user(user["user_id"]))["xp"] == 120
        assert len(published_events(mock_event_bus, "player.xp_awarded")) == 1

    async def test_unknown_user(self, container):
        with pytest.raises(NotFoundError):
            await container.xp.award_xp(999, 10, reason="quest")

    async def test_unknown_user_with_zero_amount(self, container):
        with pytest.raises(NotFoundError):
            await container.xp.award_xp(999, 0, reason="quest")

    @pytest.mark.parametrize("amount", [10.5, "10", True, None])
    async def test_amount_must_be_int(self, container, user, amount):
        with pytest.raises(ValidationError):
            await container.xp.award_xp(user["user_id"], amount, reason="quest")

    async def test_blank_reason(self, container, user):
        with pytest.raises(ValidationError):
            await container.xp.award_xp(user["user_id"], 10, reason="  ")


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.integration
class TestConcurrentAwards:
    async def test_concurrent_awards_are_all_applied(self, container, user):
        """Version conflicts are retried; no award is lost."""
        # Arrange
        awards = [container.xp.award_xp(user["user_id"], 25, reason=f"burst_{i}") for i in range(8)]

        # Act
        results = await asyncio.gather(*awards)

        # Assert
        assert all(result["applied"] for result in results)
        stored = await container.users.get_user(user["user_id"])
        assert stored["xp"] == 200
        assert stored["level"] == 2
        assert stored["total_xp_gained"] == 200
        assert len(stored["level_history"]) == 1


# ============================================================================
# ACTION REWARDS
# ============================================================================


@pytest.mark.integration
class TestAwardForAction:
    async def test_configured_reward(self, container, user):
        result = await container.xp.award_for_action(user["user_id"], "post_created")

        assert result["xp_gained"] == 50
        assert result["reason"] == "post_created"

    async def test_override_changes_reward(self, container, user, config_manager):
        config_manager.set_override("progression.xp_rewards.post_created", 120)

        result = await container.xp.award_for_action(user["user_id"], "post_created")

        assert result["xp"] == 120
        assert result["leveled_up"] is True

    async def test_unknown_action(self, container, user):
        with pytest.raises(ValidationError):
            await container.xp.award_for_action(user["user_id"], "dance_party")
