"""
Unit tests for ConfigManager and DatabaseRetryPolicy.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from rpg_social.core.config.config import Config, Environment
from rpg_social.core.database.retry_policy import (
    CONFLICT_EXCEPTIONS,
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
)


@pytest.mark.unit
class TestConfigManager:
    """Reads the repository's config/*.yaml through the autouse fixture."""

    def test_yaml_values_loaded(self, config_manager):
        assert config_manager.get("progression.max_level") == 100
        assert config_manager.get("progression.level_curve.growth") == 1.15
        assert config_manager.get("quests.daily_reset_hours") == 24

    def test_tiers_and_rewards(self, config_manager):
        tiers = config_manager.get("progression.tiers")

        assert len(tiers) == 10
        assert tiers[0]["name"] == "Beginner"
        assert config_manager.get("progression.xp_rewards.post_created") == 50

    def test_catalog_present(self, config_manager):
        slugs = [quest["slug"] for quest in config_manager.get("quests.catalog")]
        assert "daily_post" in slugs

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("progression.nope", "fallback") == "fallback"

    def test_override_and_clear(self, config_manager):
        config_manager.set_override("progression.xp_rewards.post_created", 75)
        assert config_manager.get("progression.xp_rewards.post_created") == 75

        config_manager.clear_overrides()
        assert config_manager.get("progression.xp_rewards.post_created") == 50

    def test_containers_are_copies(self, config_manager):
        rewards = config_manager.get("progression.xp_rewards")
        rewards["post_created"] = 0

        assert config_manager.get("progression.xp_rewards.post_created") == 50


def _policy(max_attempts=3):
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(max_attempts=max_attempts, initial_backoff_ms=0, max_backoff_ms=0, jitter_ms=0)
    )


@pytest.mark.unit
class TestDatabaseRetryPolicy:
    async def test_retries_stale_writes_until_success(self):
        attempts = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise StaleDataError("version mismatch")
            return "done"

        result = await _policy().execute(operation, operation_name="test.stale")

        assert result == "done"
        assert len(attempts) == 3

    async def test_gives_up_after_max_attempts(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise IntegrityError("INSERT", {}, Exception("duplicate"))

        with pytest.raises(IntegrityError):
            await _policy(max_attempts=2).execute(operation, operation_name="test.integrity")

        assert len(attempts) == 2

    async def test_operational_error_retried_then_raised_unmapped(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            await _policy(max_attempts=3).execute(operation, operation_name="test.locked")

        assert len(attempts) == 3
        assert not issubclass(OperationalError, CONFLICT_EXCEPTIONS)

    async def test_non_retriable_raised_immediately(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await _policy().execute(operation, operation_name="test.keyerror")

        assert len(attempts) == 1


@pytest.mark.unit
class TestConfigEnvironment:
    @pytest.mark.parametrize(
        "value, production, testing",
        [("production", True, False), ("TESTING", False, True), ("staging", False, False)],
    )
    def test_environment_helpers(self, monkeypatch, value, production, testing):
        monkeypatch.setattr(Config, "ENVIRONMENT", value)

        assert Config.is_production() is production
        assert Config.is_testing() is testing

    def test_unknown_environment_falls_back_to_development(self, monkeypatch):
        monkeypatch.setattr(Config, "ENVIRONMENT", "moonbase")

        assert Config.environment() is Environment.DEVELOPMENT
        assert Config.is_production() is False
