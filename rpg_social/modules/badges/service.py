"""
Badge Service

Idempotent, set-based badge unlocks on the user record. A badge id is
attached at most once; a repeat unlock returns ``False`` and writes
nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from rpg_social.core.database.base import utc_now
from rpg_social.core.database.retry_policy import CONFLICT_EXCEPTIONS, DatabaseRetryPolicy
from rpg_social.core.database.service import DatabaseService
from rpg_social.core.infra.audit_logger import AuditLogger
from rpg_social.core.logging.logger import get_logger
from rpg_social.core.validation.input_validator import InputValidator
from rpg_social.database.models.user_account import UserAccount
from rpg_social.modules.badges.logic import normalize_badge, with_badge
from rpg_social.modules.shared.base_service import BaseService
from rpg_social.modules.shared.exceptions import ConflictError, NotFoundError
from rpg_social.modules.users.repository import UserAccountRepository

if TYPE_CHECKING:
    from logging import Logger

    from rpg_social.core.config.manager import ConfigManager
    from rpg_social.core.event.bus import EventBus


class BadgeService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: Optional[EventBus],
        logger: Logger,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._user_repo = UserAccountRepository(
            model_class=UserAccount,
            logger=get_logger(f"{__name__}.UserAccountRepository"),
        )
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()

    async def add_badge(
        self,
        user_id: int,
        badge: Dict[str, Any],
        context: Optional[str] = None,
    ) -> bool:
        """
        Attach ``badge`` to the user unless a badge with its id is present.

        Args:
            badge: {id, name, icon?, description?}

        Returns:
            True if the badge was added, False if the user already had it

        Raises:
            ValidationError: Missing or blank ``id`` / ``name``
            NotFoundError: Unknown user
            ConflictError: Concurrent writers exhausted the retry budget
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        badge = normalize_badge(badge)

        self.log_operation("add_badge", user_id=user_id, badge_id=badge["id"])

        async def _add() -> Optional[Dict[str, Any]]:
            async with DatabaseService.get_transaction() as session:
                user = await self._user_repo.get(session, user_id)
                if user is None:
                    raise NotFoundError("UserAccount", user_id)

                badges = with_badge(user.badges or [], badge, utc_now())
                if badges is None:
                    return None

                user.badges = badges
                await self._user_repo.flush(session)
                return badges[-1]

        try:
            added = await self._retry.execute(
                _add, operation_name="badges.add", context={"user_id": user_id}
            )
        except CONFLICT_EXCEPTIONS as exc:
            raise ConflictError("UserAccount", "concurrent badge updates exhausted retries", user_id) from exc

        if added is None:
            self.log.debug(
                "Badge already unlocked",
                extra={"user_id": user_id, "badge_id": badge["id"]},
            )
            return False

        await AuditLogger.log(
            user_id=user_id,
            transaction_type="badge_unlocked",
            details={"badge_id": added["id"], "name": added["name"]},
            context=context or "badges.add",
        )
        await self.emit_event("badge.unlocked", {"user_id": user_id, "badge": added, "source": "direct"})

        return True

    async def list_badges(self, user_id: int) -> List[Dict[str, Any]]:
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            user = await self._user_repo.get(session, user_id)
            if user is None:
                raise NotFoundError("UserAccount", user_id)
            return [dict(badge) for badge in user.badges or []]
