"""
Pytest Configuration and Fixtures
=================================

Purpose
-------
Shared fixtures for the progression engine test suite: configuration,
a throwaway SQLite database per test, a mocked event bus, a small level
table and a fully wired ServiceContainer.

Architecture Notes
------------------
- Unit tests use pure functions or mocks (no database)
- Integration tests run the real services against SQLite via aiosqlite
- Every database test gets its own file under ``tmp_path`` (clean slate)
- The small level table keeps thresholds easy to reason about:
  0, 100, 300, 600, 1000
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List

import pytest
import pytest_asyncio

from rpg_social.core.config.manager import ConfigManager
from rpg_social.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from rpg_social.core.database.service import DatabaseService
from rpg_social.core.infra.audit_logger import AuditLogger
from rpg_social.core.logging.logger import clear_log_context, get_logger
from rpg_social.core.services.container import ServiceContainer
from rpg_social.modules.levels.table import LevelEntry

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


# ============================================================================
# TEST DATA
# ============================================================================


def build_test_levels() -> List[LevelEntry]:
    """Five-level table: two Beginner-ish bands, a feature unlock and a badge."""
    return [
        LevelEntry(level=1, xp_required=0, xp_to_next=100, tier="Beginner", title="Newcomer"),
        LevelEntry(level=2, xp_required=100, xp_to_next=200, tier="Beginner", title="Regular"),
        LevelEntry(
            level=3,
            xp_required=300,
            xp_to_next=300,
            tier="Beginner",
            title="Contributor",
            unlocked_features=("post_creation",),
        ),
        LevelEntry(level=4, xp_required=600, xp_to_next=400, tier="Novice", title="Explorer"),
        LevelEntry(
            level=5,
            xp_required=1000,
            tier="Novice",
            title="Pathfinder",
            badges=(
                {
                    "id": "novice_master_5",
                    "name": "Novice Master",
                    "icon": "🌿",
                    "description": "Reached the top of the Novice tier",
                },
            ),
        ),
    ]


TEST_QUESTS: List[Dict[str, Any]] = [
    {
        "slug": "daily_post",
        "title": "Daily Post",
        "quest_type": "daily",
        "reset_type": "daily",
        "requirements": [{"type": "create_post", "target": 1}],
        "reward_xp": 50,
    },
    {
        "slug": "daily_likes",
        "title": "Spread the Love",
        "quest_type": "daily",
        "reset_type": "daily",
        "requirements": [{"type": "like_posts", "target": 3}],
        "reward_xp": 20,
    },
    {
        "slug": "social_mix",
        "title": "Social Mix",
        "quest_type": "social",
        "requirements": [
            {"type": "create_post", "target": 1},
            {"type": "like_posts", "target": 2},
        ],
        "reward_xp": 40,
        "reward_badge": {"id": "socialite", "name": "Socialite"},
    },
    {
        "slug": "active_member",
        "title": "Active Member",
        "quest_type": "achievement",
        "min_level": 3,
        "requirements": [{"type": "create_post", "target": 10}],
        "reward_xp": 200,
    },
    {
        "slug": "hidden_gem",
        "title": "Hidden Gem",
        "quest_type": "exploration",
        "is_hidden": True,
        "requirements": [{"type": "visit_regions", "target": 1}],
        "reward_xp": 10,
    },
]


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager():
    """Fresh ConfigManager loaded from the repository's config/ directory."""
    ConfigManager.reset()
    ConfigManager.initialize(CONFIG_DIR)
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture(autouse=True)
def isolated_globals():
    """Undo process-wide bindings between tests."""
    yield
    AuditLogger.bind_event_bus(None)
    clear_log_context()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """
    Initialize DatabaseService against a per-test SQLite file.

    Scope: function (clean schema per test)
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'rpg_social.db'}"
    await DatabaseService.initialize(url)
    await DatabaseService.create_schema()

    yield

    await DatabaseService.shutdown()


@pytest.fixture
def retry_policy() -> DatabaseRetryPolicy:
    """Generous retry budget with tiny backoff so contention tests stay fast."""
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(
            max_attempts=30,
            initial_backoff_ms=1,
            max_backoff_ms=20,
            jitter_ms=5,
        )
    )


# ============================================================================
# MOCK FIXTURES
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus capturing published events.

    Uses: ``published_events(mock_event_bus, "quest.completed")``
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def test_levels() -> List[LevelEntry]:
    return build_test_levels()


@pytest_asyncio.fixture
async def container(database, mock_event_bus, retry_policy, test_levels) -> ServiceContainer:
    """ServiceContainer wired to the mock bus with the small level table seeded."""
    services = ServiceContainer(ConfigManager, event_bus=mock_event_bus, retry_policy=retry_policy)
    await services.levels.seed_levels(test_levels)
    return services


@pytest_asyncio.fixture
async def seeded_quests(container) -> Dict[str, int]:
    return await container.quests.seed_quests(TEST_QUESTS)


@pytest_asyncio.fixture
async def user(container) -> Dict[str, Any]:
    return await container.users.register_user("aurora")


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def published_events(mock_bus, event_name: str) -> List[Dict[str, Any]]:
    """
    Payloads published under ``event_name`` on a mocked bus.

    Usage:
        await xp.award_xp(user_id, 100, "quest")
        payloads = published_events(mock_event_bus, "player.leveled_up")
        assert payloads[0]["new_level"] == 2
    """
    return [
        call.args[1]
        for call in mock_bus.publish.await_args_list
        if call.args and call.args[0] == event_name
    ]
