"""
Integration Tests for QuestProgressService
==========================================

Catalog seeding, starting quests, action-driven progress, completion
rewards, expiry and the once-per-day reset, against SQLite.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from rpg_social.core.database.base import utc_now
from rpg_social.core.database.service import DatabaseService
from rpg_social.database.models.quest import QuestDefinition, QuestProgress
from rpg_social.modules.shared.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from tests.conftest import TEST_QUESTS, published_events


async def _records(user_id):
    async with DatabaseService.get_session() as session:
        result = await session.execute(
            select(QuestProgress).where(QuestProgress.user_id == user_id).order_by(QuestProgress.id)
        )
        return list(result.scalars().all())


async def _patch_record(user_id, slug, **values):
    """Rewrite columns of one progress record, e.g. to move it into the past."""
    async with DatabaseService.get_transaction() as session:
        result = await session.execute(
            select(QuestProgress)
            .join(QuestDefinition, QuestDefinition.id == QuestProgress.quest_id)
            .where(QuestProgress.user_id == user_id, QuestDefinition.slug == slug)
        )
        record = result.scalar_one()
        for column, value in values.items():
            setattr(record, column, value)


# ============================================================================
# CATALOG
# ============================================================================


@pytest.mark.integration
class TestSeedQuests:
    async def test_seed_is_idempotent(self, container):
        first = await container.quests.seed_quests(TEST_QUESTS)
        second = await container.quests.seed_quests(TEST_QUESTS)

        assert first == {"inserted": len(TEST_QUESTS), "updated": 0, "total": len(TEST_QUESTS)}
        assert second == {"inserted": 0, "updated": 0, "total": len(TEST_QUESTS)}

    async def test_changed_definition_is_updated(self, container, seeded_quests):
        changed = [dict(TEST_QUESTS[0], reward_xp=75)]

        result = await container.quests.seed_quests(changed)

        assert result == {"inserted": 0, "updated": 1, "total": 1}

    async def test_default_catalog_from_config(self, container):
        result = await container.quests.seed_quests()
        assert result["inserted"] == result["total"] > 0

    @pytest.mark.parametrize(
        "definition",
        [
            {"slug": "x", "title": "X", "requirements": []},
            {"slug": "x", "title": "X", "requirements": [{"type": "juggling", "target": 1}]},
            {"slug": "x", "title": "X", "requirements": [{"type": "create_post", "target": 0}]},
            {"slug": "Bad Slug", "title": "X", "requirements": [{"type": "create_post", "target": 1}]},
            {"title": "No slug", "requirements": [{"type": "create_post", "target": 1}]},
        ],
    )
    async def test_malformed_definitions_rejected(self, container, definition):
        with pytest.raises(ValidationError):
            await container.quests.seed_quests([definition])

    async def test_duplicate_slugs_rejected(self, container):
        with pytest.raises(ValidationError):
            await container.quests.seed_quests([TEST_QUESTS[0], TEST_QUESTS[0]])


# ============================================================================
# START
# ============================================================================


@pytest.mark.integration
class TestStartQuest:
    async def test_start(self, container, seeded_quests, user, mock_event_bus):
        result = await container.quests.start_quest(user["user_id"], "social_mix")

        assert result["status"] == "active"
        assert result["progress"] == {}
        assert result["progress_percent"] == 0
        assert result["expires_at"] is None
        assert published_events(mock_event_bus, "quest.started")[0]["slug"] == "social_mix"

    async def test_start_daily_sets_expiry(self, container, seeded_quests, user):
        result = await container.quests.start_quest(user["user_id"], "daily_post")

        assert result["expires_at"] - result["started_at"] == timedelta(hours=24)

    async def test_start_twice_conflicts(self, container, seeded_quests, user):
        await container.quests.start_quest(user["user_id"], "social_mix")

        with pytest.raises(ConflictError):
            await container.quests.start_quest(user["user_id"], "social_mix")

    async def test_level_gate(self, container, seeded_quests, user):
        with pytest.raises(InvalidOperationError):
            await container.quests.start_quest(user["user_id"], "active_member")

        await container.xp.award_xp(user["user_id"], 300, reason="grind")
        result = await container.quests.start_quest(user["user_id"], "active_member")

        assert result["status"] == "active"

    async def test_unknown_quest(self, container, seeded_quests, user):
        with pytest.raises(NotFoundError):
            await container.quests.start_quest(user["user_id"], "does_not_exist")

    async def test_expired_quest_can_restart(self, container, seeded_quests, user):
        await container.quests.start_quest(user["user_id"], "social_mix")
        await _patch_record(user["user_id"], "social_mix", status="expired")

        result = await container.quests.start_quest(user["user_id"], "social_mix")

        assert result["status"] == "active"
        assert len(await _records(user["user_id"])) == 1


# ============================================================================
# PROGRESS
# ============================================================================


@pytest.mark.integration
class TestUpdateProgress:
    async def test_daily_post_completes_once(self, container, seeded_quests, user, mock_event_bus):
        """Completion awards XP exactly once, later actions do not re-award."""
        # Arrange
        await container.quests.reset_daily_quests(user["user_id"])

        # Act
        first = await container.quests.update_progress(user["user_id"], "create_post", 1)
        second = await container.quests.update_progress(user["user_id"], "create_post", 1)

        # Assert
        assert [quest["slug"] for quest in first["completed_quests"]] == ["daily_post"]
        assert first["completed_quests"][0]["rewards"]["xp"] == 50
        assert first["completed_quests"][0]["rewards"]["total_xp"] == 50
        assert second["completed_quests"] == []
        assert second["updated_quests"] == []

        stored = await container.users.get_user(user["user_id"])
        assert stored["xp"] == 50
        assert stored["quests_completed"] == 1

        awards = published_events(mock_event_bus, "player.xp_awarded")
        assert [award["reason"] for award in awards] == ["quest_completed:daily_post"]
        assert len(published_events(mock_event_bus, "quest.completed")) == 1

    @pytest.mark.parametrize(
        "sequence",
        [
            ["like_posts", "like_posts", "create_post"],
            ["create_post", "like_posts", "like_posts"],
            ["like_posts", "create_post", "like_posts"],
        ],
    )
    async def test_completion_independent_of_order(self, container, seeded_quests, user, sequence):
        await container.quests.start_quest(user["user_id"], "social_mix")

        completed_on = []
        for index, action in enumerate(sequence, start=1):
            result = await container.quests.update_progress(user["user_id"], action)
            if any(q["slug"] == "social_mix" for q in result["completed_quests"]):
                completed_on.append(index)

        assert completed_on == [3]

    async def test_partial_progress_reported(self, container, seeded_quests, user, mock_event_bus):
        await container.quests.start_quest(user["user_id"], "social_mix")

        result = await container.quests.update_progress(user["user_id"], "like_posts")

        assert result["updated_quests"] == [
            {
                "quest_id": result["updated_quests"][0]["quest_id"],
                "slug": "social_mix",
                "title": "Social Mix",
                "progress": {"like_posts": 1},
                "progress_percent": 25,
            }
        ]
        assert len(published_events(mock_event_bus, "quest.progress_updated")) == 1

    async def test_quest_badge_granted(self, container, seeded_quests, user, mock_event_bus):
        await container.quests.start_quest(user["user_id"], "social_mix")

        await container.quests.update_progress(user["user_id"], "create_post")
        result = await container.quests.update_progress(user["user_id"], "like_posts", 2)

        rewards = result["completed_quests"][0]["rewards"]
        assert rewards["badge"]["id"] == "socialite"
        assert [b["id"] for b in await container.badges.list_badges(user["user_id"])] == ["socialite"]
        assert published_events(mock_event_bus, "badge.unlocked")[0]["source"] == "quest"

    async def test_completion_can_level_up(self, container, seeded_quests, user):
        await container.xp.award_xp(user["user_id"], 90, reason="warmup")
        await container.quests.reset_daily_quests(user["user_id"])

        result = await container.quests.update_progress(user["user_id"], "create_post")

        rewards = result["completed_quests"][0]["rewards"]
        assert rewards["leveled_up"] is True
        assert rewards["new_level"] == 2
        assert rewards["total_xp"] == 140

    async def test_expired_records_are_closed(self, container, seeded_quests, user):
        await container.quests.reset_daily_quests(user["user_id"])
        await _patch_record(user["user_id"], "daily_post", expires_at=utc_now() - timedelta(minutes=1))

        result = await container.quests.update_progress(user["user_id"], "create_post")

        assert [quest["slug"] for quest in result["expired_quests"]] == ["daily_post"]
        assert result["completed_quests"] == []
        assert (await container.users.get_user(user["user_id"]))["xp"] == 0

    async def test_unknown_action(self, container, seeded_quests, user):
        with pytest.raises(ValidationError):
            await container.quests.update_progress(user["user_id"], "juggling")

    async def test_value_must_be_positive(self, container, seeded_quests, user):
        with pytest.raises(ValidationError):
            await container.quests.update_progress(user["user_id"], "create_post", 0)

    async def test_one_action_completes_several_quests(self, container, seeded_quests, user):
        # Arrange
        await container.quests.reset_daily_quests(user["user_id"])
        await container.quests.start_quest(user["user_id"], "social_mix")
        await container.quests.update_progress(user["user_id"], "like_posts", 2)

        # Act
        result = await container.quests.update_progress(user["user_id"], "create_post")

        # Assert
        assert sorted(q["slug"] for q in result["completed_quests"]) == ["daily_post", "social_mix"]
        stored = await container.users.get_user(user["user_id"])
        assert stored["xp"] == 90
        assert stored["quests_completed"] == 2

    async def test_unknown_user(self, container, seeded_quests):
        with pytest.raises(NotFoundError):
            await container.quests.update_progress(4242, "create_post")


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.integration
class TestConcurrentProgress:
    async def test_concurrent_actions_complete_once(self, container, seeded_quests, user):
        """Versioned records keep every increment and pay the reward once."""
        # Arrange
        await container.quests.reset_daily_quests(user["user_id"])

        # Act
        results = await asyncio.gather(
            *[container.quests.update_progress(user["user_id"], "like_posts") for _ in range(8)]
        )

        # Assert
        completions = [
            quest for result in results for quest in result["completed_quests"] if quest["slug"] == "daily_likes"
        ]
        assert len(completions) == 1

        stored = await container.users.get_user(user["user_id"])
        assert stored["xp"] == 20
        assert stored["quests_completed"] == 1

        records = {record.quest_id: record for record in await _records(user["user_id"])}
        likes = records[completions[0]["quest_id"]]
        assert likes.status == "completed"
        assert likes.progress == {"like_posts": 3}


# ============================================================================
# DAILY RESET
# ============================================================================


@pytest.mark.integration
class TestDailyReset:
    async def test_reset_twice_keeps_one_record_per_quest(self, container, seeded_quests, user):
        first = await container.quests.reset_daily_quests(user["user_id"])
        second = await container.quests.reset_daily_quests(user["user_id"])

        assert sorted(first["new_quests"]) == ["Daily Post", "Spread the Love"]
        assert first["total_daily_quests"] == 2
        assert second["new_quests"] == []
        assert second["reset_quests"] == []
        assert sorted(second["unchanged_quests"]) == ["Daily Post", "Spread the Love"]

        records = await _records(user["user_id"])
        assert len(records) == 2
        assert len({record.quest_id for record in records}) == 2

    async def test_second_reset_keeps_today_progress(self, container, seeded_quests, user):
        await container.quests.reset_daily_quests(user["user_id"])
        await container.quests.update_progress(user["user_id"], "like_posts")

        await container.quests.reset_daily_quests(user["user_id"])

        quests = {q["slug"]: q for q in await container.quests.get_available_quests(user["user_id"])}
        assert quests["daily_likes"]["progress"] == {"like_posts": 1}

    async def test_previous_day_record_is_reopened(self, container, seeded_quests, user):
        await container.quests.reset_daily_quests(user["user_id"])
        await container.quests.update_progress(user["user_id"], "create_post")
        yesterday = utc_now() - timedelta(days=1)
        await _patch_record(user["user_id"], "daily_post", last_reset_at=yesterday, started_at=yesterday)

        result = await container.quests.reset_daily_quests(user["user_id"])

        assert result["reset_quests"] == ["Daily Post"]
        quests = {q["slug"]: q for q in await container.quests.get_available_quests(user["user_id"])}
        assert quests["daily_post"]["status"] == "active"
        assert quests["daily_post"]["progress"] == {}

    async def test_concurrent_first_resets_create_one_record_per_quest(self, container, seeded_quests, user):
        """Racing resets collide on the unique (user, quest) pair and retry."""
        # Act
        results = await asyncio.gather(
            *[container.quests.reset_daily_quests(user["user_id"]) for _ in range(5)]
        )

        # Assert
        records = await _records(user["user_id"])
        assert len(records) == 2
        assert len({record.quest_id for record in records}) == 2
        assert sum(len(result["new_quests"]) for result in results) == 2

    async def test_reset_event_only_when_something_changed(self, container, seeded_quests, user, mock_event_bus):
        await container.quests.reset_daily_quests(user["user_id"])
        await container.quests.reset_daily_quests(user["user_id"])

        assert len(published_events(mock_event_bus, "quest.daily_reset")) == 1

    async def test_reset_status(self, container, seeded_quests, user):
        before = await container.quests.get_daily_reset_status(user["user_id"])
        await container.quests.reset_daily_quests(user["user_id"])
        after = await container.quests.get_daily_reset_status(user["user_id"])

        assert before["needs_reset"] is True
        assert before["last_reset_at"] is None
        assert after["needs_reset"] is False
        assert after["last_reset_at"] is not None
        assert 0 < after["seconds_until_reset"] <= 24 * 3600

    async def test_unknown_user(self, container, seeded_quests):
        with pytest.raises(NotFoundError):
            await container.quests.reset_daily_quests(4242)


# ============================================================================
# READ MODELS
# ============================================================================


@pytest.mark.integration
class TestAvailableQuests:
    async def test_hidden_and_gated_quests_excluded(self, container, seeded_quests, user):
        slugs = {q["slug"] for q in await container.quests.get_available_quests(user["user_id"])}

        assert slugs == {"daily_post", "daily_likes", "social_mix"}

    async def test_status_annotation(self, container, seeded_quests, user):
        await container.quests.start_quest(user["user_id"], "social_mix")

        quests = {q["slug"]: q for q in await container.quests.get_available_quests(user["user_id"])}

        assert quests["social_mix"]["status"] == "active"
        assert quests["daily_post"]["status"] is None
        assert quests["daily_post"]["progress_percent"] == 0
