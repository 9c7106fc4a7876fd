"""
Service Container

Purpose
-------
Builds the progression services once, in dependency order, and hands out
the shared instances.

Responsibilities
----------------
- Construct every domain service with ``(config_manager, event_bus, logger)``
  plus its service dependencies
- Share one DatabaseRetryPolicy and one LevelService (and its table cache)
- Optionally seed the level and quest catalogs at startup

Non-Responsibilities
--------------------
- Database engine lifecycle (DatabaseService.initialize / shutdown)
- Business logic

Usage
-----
    container = ServiceContainer(ConfigManager, event_bus=None)
    await container.initialize(seed=True)

    await container.users.register_user("aurora")
    await container.xp.award_for_action(1, "post_created")
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Type

from rpg_social.core.config.manager import ConfigManager
from rpg_social.core.database.retry_policy import DatabaseRetryPolicy
from rpg_social.core.infra.audit_logger import AuditLogger
from rpg_social.core.logging.logger import get_logger
from rpg_social.modules.badges.service import BadgeService
from rpg_social.modules.levels.service import LevelService
from rpg_social.modules.progression.xp_service import XpAwardService
from rpg_social.modules.quests.service import QuestProgressService
from rpg_social.modules.users.service import UserService

if TYPE_CHECKING:
    from rpg_social.core.event.bus import EventBus

logger = get_logger(__name__)


class ServiceContainer:
    def __init__(
        self,
        config_manager: Type[ConfigManager] = ConfigManager,
        event_bus: Optional[EventBus] = None,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()

        self.levels = LevelService(
            config_manager, event_bus, get_logger("rpg_social.levels"), retry_policy=self._retry
        )
        self.xp = XpAwardService(
            config_manager,
            event_bus,
            get_logger("rpg_social.progression"),
            level_service=self.levels,
            retry_policy=self._retry,
        )
        self.quests = QuestProgressService(
            config_manager,
            event_bus,
            get_logger("rpg_social.quests"),
            xp_service=self.xp,
            retry_policy=self._retry,
        )
        self.badges = BadgeService(
            config_manager, event_bus, get_logger("rpg_social.badges"), retry_policy=self._retry
        )
        self.users = UserService(
            config_manager,
            event_bus,
            get_logger("rpg_social.users"),
            level_service=self.levels,
            retry_policy=self._retry,
        )

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self, seed: bool = False) -> Dict[str, Any]:
        """
        Bind the audit trail to the event bus and optionally seed catalogs.

        Returns:
            Seed summaries keyed by catalog (empty when ``seed`` is False)
        """
        start = time.perf_counter()
        AuditLogger.bind_event_bus(self._event_bus)

        summary: Dict[str, Any] = {}
        if seed:
            summary["levels"] = await self.levels.seed_levels()
            summary["quests"] = await self.quests.seed_quests()

        self._initialized = True
        logger.info(
            "ServiceContainer initialized",
            extra={
                "seeded": seed,
                "event_bus": self._event_bus is not None,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return summary
