"""
User Service

Purpose
-------
Registration of progression records and the user progression read model
(level, tier, progress, next milestone, upcoming rewards).

Notes
-----
- A user starts at ``xp=0, level=1``; XP only changes through
  XpAwardService afterwards.
- Registration is a write under get_transaction(); a concurrent duplicate
  username loses on the unique constraint, is retried, and then sees the
  existing row and raises ConflictError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from rpg_social.core.database.base import ensure_utc
from rpg_social.core.database.retry_policy import CONFLICT_EXCEPTIONS, DatabaseRetryPolicy
from rpg_social.core.database.service import DatabaseService
from rpg_social.core.infra.audit_logger import AuditLogger
from rpg_social.core.logging.logger import get_logger
from rpg_social.core.validation.input_validator import InputValidator
from rpg_social.database.models.user_account import UserAccount
from rpg_social.modules.progression.formulas import format_xp, next_milestone, tier_progress_percent
from rpg_social.modules.shared.base_service import BaseService
from rpg_social.modules.shared.constants import LEVELS_PER_TIER, MILESTONE_INTERVAL
from rpg_social.modules.shared.exceptions import ConflictError, NotFoundError
from rpg_social.modules.users.repository import UserAccountRepository

if TYPE_CHECKING:
    from logging import Logger

    from rpg_social.core.config.manager import ConfigManager
    from rpg_social.core.event.bus import EventBus
    from rpg_social.modules.levels.service import LevelService


class UserService(BaseService):
    """
    Public Methods
    --------------
    - register_user() -> Create a progression record
    - get_user() -> Stored progression state
    - get_user_progression() -> Read model for profile/level screens
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: Optional[EventBus],
        logger: Logger,
        level_service: LevelService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._user_repo = UserAccountRepository(
            model_class=UserAccount,
            logger=get_logger(f"{__name__}.UserAccountRepository"),
        )
        self._levels = level_service
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    async def register_user(self, username: str, context: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a progression record at level 1 with no XP.

        Raises:
            ValidationError: Blank or malformed username
            ConflictError: Username already taken

        Example:
            >>> user = await users.register_user("aurora")
            >>> (user["xp"], user["level"])
            (0, 1)
        """
        username = InputValidator.validate_string(
            username, "username", min_length=3, max_length=64, allowed_chars="A-Za-z0-9_.\\-"
        )

        self.log_operation("register_user", username=username)

        async def _register() -> UserAccount:
            async with DatabaseService.get_transaction() as session:
                existing = await self._user_repo.find_by_username(session, username)
                if existing is not None:
                    raise ConflictError("UserAccount", f"username '{username}' is taken", username)

                user = UserAccount(
                    username=username,
                    xp=0,
                    level=1,
                    quests_completed=0,
                    total_xp_gained=0,
                    badges=[],
                    level_history=[],
                )
                return await self._user_repo.add(session, user)

        try:
            user = await self._retry.execute(
                _register, operation_name="users.register", context={"username": username}
            )
        except CONFLICT_EXCEPTIONS as exc:
            raise ConflictError("UserAccount", "concurrent registration did not settle", username) from exc

        await AuditLogger.log(
            user_id=user.id,
            transaction_type="user_registered",
            details={"username": username},
            context=context or "users.register",
        )
        await self.emit_event("player.registered", {"user_id": user.id, "username": username})

        self.log.info(f"User registered: {username}", extra={"user_id": user.id})
        return self._serialize(user)

    # ========================================================================
    # READS
    # ========================================================================

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            user = await self._user_repo.get(session, user_id)
            if user is None:
                raise NotFoundError("UserAccount", user_id)
            return self._serialize(user)

    async def get_user_progression(self, user_id: int) -> Dict[str, Any]:
        """
        Returns:
            {
                "user": stored state,
                "progression": {current_level, next_level, xp, xp_into_level,
                                xp_for_next, percent, is_max_level},
                "current_level": level entry,
                "tier": {name, color, icon, category, progress_percent},
                "next_milestone": level entry or None at the top,
                "upcoming_rewards": [...],
                "recent_levels": last five level-history entries,
                "xp_display": "1.2K",
            }
        """
        user = await self.get_user(user_id)
        table = await self._levels.get_table()

        level = table.clamp_level(user["level"])
        entry = table.get(level)
        if entry is None:
            raise NotFoundError("LevelDefinition", level)

        interval = int(self.get_config("progression.milestone_interval", MILESTONE_INTERVAL))
        levels_per_tier = int(self.get_config("progression.levels_per_tier", LEVELS_PER_TIER))
        milestone_level = next_milestone(level, interval=interval, max_level=table.max_level)
        milestone = table.get(milestone_level) if milestone_level > level else None

        upcoming = await self._levels.get_upcoming_rewards(level)

        return {
            "user": user,
            "progression": table.get_level_progression(user["level"], user["xp"]).to_dict(),
            "current_level": entry.to_dict(),
            "tier": {
                "name": entry.tier,
                "color": entry.tier_color,
                "icon": entry.icon,
                "category": entry.category,
                "progress_percent": tier_progress_percent(level, levels_per_tier),
            },
            "next_milestone": milestone.to_dict() if milestone is not None else None,
            "upcoming_rewards": upcoming,
            "recent_levels": list(reversed(user["level_history"][-5:])),
            "xp_display": format_xp(user["xp"]),
        }

    @staticmethod
    def _serialize(user: UserAccount) -> Dict[str, Any]:
        return {
            "user_id": user.id,
            "username": user.username,
            "xp": user.xp,
            "level": user.level,
            "quests_completed": user.quests_completed,
            "total_xp_gained": user.total_xp_gained,
            "badges": [dict(badge) for badge in user.badges or []],
            "level_history": [dict(item) for item in user.level_history or []],
            "created_at": ensure_utc(user.created_at),
        }
