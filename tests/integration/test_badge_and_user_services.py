"""
Integration tests for BadgeService and UserService.
"""

import pytest

from rpg_social.modules.levels.table import LevelTable
from rpg_social.modules.shared.exceptions import ConflictError, NotFoundError, ValidationError
from tests.conftest import published_events

EARLY_BIRD = {"id": "early_bird", "name": "Early Bird", "icon": "🐦", "description": "Joined early"}


@pytest.mark.integration
class TestBadgeService:
    async def test_add_badge_is_idempotent(self, container, user, mock_event_bus):
        first = await container.badges.add_badge(user["user_id"], EARLY_BIRD)
        second = await container.badges.add_badge(user["user_id"], dict(EARLY_BIRD, name="Renamed"))

        assert first is True
        assert second is False

        badges = await container.badges.list_badges(user["user_id"])
        assert [badge["id"] for badge in badges] == ["early_bird"]
        assert badges[0]["name"] == "Early Bird"
        assert "unlocked_at" in badges[0]

        unlocked = published_events(mock_event_bus, "badge.unlocked")
        assert len(unlocked) == 1
        assert unlocked[0]["source"] == "direct"

    async def test_distinct_badges_accumulate(self, container, user):
        await container.badges.add_badge(user["user_id"], EARLY_BIRD)
        await container.badges.add_badge(user["user_id"], {"id": "night_owl", "name": "Night Owl"})

        badges = await container.badges.list_badges(user["user_id"])
        assert [badge["id"] for badge in badges] == ["early_bird", "night_owl"]

    async def test_badge_requires_id_and_name(self, container, user):
        with pytest.raises(ValidationError):
            await container.badges.add_badge(user["user_id"], {"name": "Nameless"})

    async def test_unknown_user(self, container):
        with pytest.raises(NotFoundError):
            await container.badges.add_badge(31337, EARLY_BIRD)


@pytest.mark.integration
class TestUserService:
    async def test_register(self, container, mock_event_bus):
        user = await container.users.register_user("  nova_7 ")

        assert user["username"] == "nova_7"
        assert (user["xp"], user["level"], user["badges"]) == (0, 1, [])
        assert user["created_at"].tzinfo is not None
        assert published_events(mock_event_bus, "player.registered")[0]["username"] == "nova_7"

    async def test_duplicate_username(self, container, user):
        with pytest.raises(ConflictError):
            await container.users.register_user("aurora")

    @pytest.mark.parametrize("username", ["ab", "has space", "emoji🙂", None])
    async def test_invalid_username(self, container, username):
        with pytest.raises(ValidationError):
            await container.users.register_user(username)

    async def test_get_unknown_user(self, container):
        with pytest.raises(NotFoundError):
            await container.users.get_user(404)

    async def test_progression_read_model(self, container, user):
        await container.xp.award_xp(user["user_id"], 150, reason="quest")

        view = await container.users.get_user_progression(user["user_id"])

        assert view["progression"]["current_level"] == 2
        assert view["progression"]["percent"] == 25.0
        assert view["progression"]["xp_for_next"] == 150
        assert view["current_level"]["title"] == "Regular"
        assert view["tier"]["name"] == "Beginner"
        assert view["tier"]["progress_percent"] == 20.0
        assert view["next_milestone"]["level"] == 5
        assert [reward["level"] for reward in view["upcoming_rewards"]] == [3, 5]
        assert view["recent_levels"][0]["level"] == 2
        assert view["xp_display"] == "150"

    async def test_progression_at_max_level(self, container, user):
        await container.xp.award_xp(user["user_id"], 2500, reason="quest")

        view = await container.users.get_user_progression(user["user_id"])

        assert view["progression"]["is_max_level"] is True
        assert view["progression"]["percent"] == 100.0
        assert view["next_milestone"] is None
        assert view["upcoming_rewards"] == []
        assert view["xp_display"] == "2.5K"

    async def test_progression_without_level_definition(self, container, user, mocker):
        mocker.patch.object(LevelTable, "get", return_value=None)

        with pytest.raises(NotFoundError):
            await container.users.get_user_progression(user["user_id"])
