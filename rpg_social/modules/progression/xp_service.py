"""
XP Award Service

Purpose
-------
Apply XP to a user, recompute the cached level from the level table,
detect level-ups and report what they unlocked.

Domain
------
- Validate award inputs (integer amount, non-empty reason)
- Treat non-positive amounts as a no-op
- Write xp and level together in one versioned UPDATE
- Append level history and grant level badges on level-up
- Map configured social actions to XP amounts

Concurrency
-----------
``user_accounts.version`` is the mapper's version column, so the UPDATE
carries ``WHERE version = :seen``. A concurrent writer makes it miss and
SQLAlchemy raises StaleDataError; DatabaseRetryPolicy replays the whole
read-modify-write in a fresh transaction. When attempts run out the
caller gets ConflictError.

Events (published after commit)
-------------------------------
- player.xp_awarded: every applied award
- player.leveled_up: when the level increased
- badge.unlocked: for each level badge granted
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from rpg_social.core.database.base import utc_now
from rpg_social.core.database.retry_policy import CONFLICT_EXCEPTIONS, DatabaseRetryPolicy
from rpg_social.core.database.service import DatabaseService
from rpg_social.core.infra.audit_logger import AuditLogger
from rpg_social.core.logging.logger import LogContext, get_logger
from rpg_social.core.validation.input_validator import InputValidator
from rpg_social.database.models.user_account import UserAccount
from rpg_social.modules.badges.logic import with_badge
from rpg_social.modules.shared.base_service import BaseService
from rpg_social.modules.shared.constants import DEFAULT_XP_REWARDS
from rpg_social.modules.shared.exceptions import ConflictError, NotFoundError
from rpg_social.modules.users.repository import UserAccountRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from rpg_social.core.config.manager import ConfigManager
    from rpg_social.core.event.bus import EventBus
    from rpg_social.modules.levels.service import LevelService


@dataclass
class AwardOutcome:
    """Result of one award, kept until commit so events can go out afterwards."""

    user_id: int
    xp: int
    level: int
    old_xp: int
    old_level: int
    xp_gained: int
    leveled_up: bool
    applied: bool
    reason: str
    unlocked_rewards: List[Dict[str, Any]] = field(default_factory=list)
    badges_granted: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "xp": self.xp,
            "level": self.level,
            "old_xp": self.old_xp,
            "old_level": self.old_level,
            "xp_gained": self.xp_gained,
            "leveled_up": self.leveled_up,
            "applied": self.applied,
            "unlocked_rewards": self.unlocked_rewards,
            "badges_granted": self.badges_granted,
            "reason": self.reason,
        }


class XpAwardService(BaseService):
    """
    Public Methods
    --------------
    - award_xp() -> Apply an XP delta with level-up detection
    - award_for_action() -> Award the configured XP for a social action
    - apply_award() -> Same mutation inside a caller-owned transaction
    - publish_award() -> Audit + events for a committed outcome
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
    # PUBLIC API
    # ========================================================================

    async def award_xp(
        self,
        user_id: int,
        amount: int,
        reason: str,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Add ``amount`` XP to a user.

        Args:
            user_id: Target user
            amount: Integer XP delta; ``<= 0`` leaves the record untouched
            reason: Why the XP was earned (e.g. "post_created")
            context: Optional originating operation for the audit trail

        Returns:
            {user_id, xp, level, old_xp, old_level, xp_gained, leveled_up,
             applied, unlocked_rewards, badges_granted, reason}

        Raises:
            ValidationError: Non-integer amount or blank reason
            NotFoundError: Unknown user
            ConflictError: Concurrent writers exhausted the retry budget

        Example:
            >>> result = await xp_service.award_xp(7, 100, "quest_completed")
            >>> result["leveled_up"]
            True
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        amount = InputValidator.validate_integer(amount, "amount", strict=True)
        reason = InputValidator.validate_string(reason, "reason", min_length=1, max_length=100)

        self.log_operation("award_xp", user_id=user_id, amount=amount, reason=reason)

        if amount <= 0:
            return (await self._unchanged_outcome(user_id, reason)).to_dict()

        async def _award() -> AwardOutcome:
            async with DatabaseService.get_transaction() as session:
                user = await self._user_repo.get(session, user_id)
                if user is None:
                    raise NotFoundError("UserAccount", user_id)
                return await self.apply_award(session, user, amount, reason)

        async with LogContext(user_id=user_id, operation="xp.award"):
            try:
                outcome = await self._retry.execute(
                    _award,
                    operation_name="xp.award",
                    context={"user_id": user_id, "amount": amount},
                )
            except CONFLICT_EXCEPTIONS as exc:
                raise ConflictError(
                    "UserAccount", "concurrent XP updates exhausted retries", user_id
                ) from exc

            await self.publish_award(outcome, context=context)

        return outcome.to_dict()

    async def award_for_action(
        self,
        user_id: int,
        action: str,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Award the XP configured under ``progression.xp_rewards`` for ``action``.

        Raises:
            ValidationError: If ``action`` has no configured reward
        """
        rewards: Dict[str, int] = self.get_config("progression.xp_rewards", DEFAULT_XP_REWARDS)
        action = InputValidator.validate_choice(action, "action", rewards.keys())

        return await self.award_xp(user_id, int(rewards[action]), reason=action, context=context)

    # ========================================================================
    # TRANSACTION BUILDING BLOCKS
    # ========================================================================

    async def apply_award(
        self,
        session: AsyncSession,
        user: UserAccount,
        amount: int,
        reason: str,
    ) -> AwardOutcome:
        """
        Mutate ``user`` inside the caller's transaction and flush.

        Does not commit and does not publish; the caller does both. A lost
        version race raises StaleDataError from the flush.
        """
        table = await self._levels.get_table(session)

        old_xp = user.xp
        old_level = user.level
        new_xp = old_xp + amount
        new_level = table.get_level_by_xp(new_xp).level
        leveled_up = new_level > old_level

        user.xp = new_xp
        user.level = new_level
        user.total_xp_gained = (user.total_xp_gained or 0) + amount

        unlocked_rewards: List[Dict[str, Any]] = []
        badges_granted: List[Dict[str, Any]] = []

        if leveled_up:
            now = utc_now()
            user.level_history = list(user.level_history or []) + [
                {
                    "level": new_level,
                    "achieved_at": now.isoformat(),
                    "xp_at_achievement": new_xp,
                    "reason": reason,
                }
            ]

            unlocked_rewards = table.rewards_between(old_level, new_level)
            badges = list(user.badges or [])
            for reward in unlocked_rewards:
                for badge in reward["badges"]:
                    updated = with_badge(badges, badge, now)
                    if updated is not None:
                        badges = updated
                        badges_granted.append(badges[-1])
            if badges_granted:
                user.badges = badges

        await self._user_repo.flush(session)

        return AwardOutcome(
            user_id=user.id,
            xp=new_xp,
            level=new_level,
            old_xp=old_xp,
            old_level=old_level,
            xp_gained=amount,
            leveled_up=leveled_up,
            applied=True,
            reason=reason,
            unlocked_rewards=unlocked_rewards,
            badges_granted=badges_granted,
        )

    async def publish_award(self, outcome: AwardOutcome, context: Optional[str] = None) -> None:
        """Audit and notify for a committed award. No-op for unapplied outcomes."""
        if not outcome.applied:
            return

        await AuditLogger.log(
            user_id=outcome.user_id,
            transaction_type="xp_awarded",
            details={
                "amount": outcome.xp_gained,
                "old_xp": outcome.old_xp,
                "new_xp": outcome.xp,
                "old_level": outcome.old_level,
                "new_level": outcome.level,
                "reason": outcome.reason,
            },
            context=context or "xp.award",
        )

        await self.emit_event(
            "player.xp_awarded",
            {
                "user_id": outcome.user_id,
                "amount": outcome.xp_gained,
                "old_xp": outcome.old_xp,
                "new_xp": outcome.xp,
                "level": outcome.level,
                "reason": outcome.reason,
            },
        )

        if outcome.leveled_up:
            await self.emit_event(
                "player.leveled_up",
                {
                    "user_id": outcome.user_id,
                    "old_level": outcome.old_level,
                    "new_level": outcome.level,
                    "levels_gained": outcome.level - outcome.old_level,
                    "unlocked_rewards": outcome.unlocked_rewards,
                },
            )
            self.log.info(
                f"User {outcome.user_id} leveled up: {outcome.old_level} -> {outcome.level}",
                extra={
                    "user_id": outcome.user_id,
                    "old_level": outcome.old_level,
                    "new_level": outcome.level,
                },
            )

        for badge in outcome.badges_granted:
            await self.emit_event(
                "badge.unlocked",
                {"user_id": outcome.user_id, "badge": badge, "source": "level_up"},
            )

    # ========================================================================
    # INTERNAL
    # ========================================================================

    async def _unchanged_outcome(self, user_id: int, reason: str) -> AwardOutcome:
        async with DatabaseService.get_session() as session:
            user = await self._user_repo.get(session, user_id)
            if user is None:
                raise NotFoundError("UserAccount", user_id)

            return AwardOutcome(
                user_id=user.id,
                xp=user.xp,
                level=user.level,
                old_xp=user.xp,
                old_level=user.level,
                xp_gained=0,
                leveled_up=False,
                applied=False,
                reason=reason,
            )
