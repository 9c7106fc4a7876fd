"""
Quest Progress Service

Purpose
-------
Tracks per-user quest progress keyed by social action type, detects
completion, grants rewards and runs the daily reset.

Domain
------
- Seed the quest catalog (idempotent upsert by slug)
- Start quests, respecting level prerequisites
- Add action counts to every matching active quest
- Complete quests: XP through XpAwardService in the same transaction,
  completion counter, optional badge
- Expire active records whose ``expires_at`` has passed
- Reopen or create daily quest records once per UTC day

State machine
-------------
``active -> completed`` when every requirement target is reached,
``active -> expired`` once ``expires_at`` passes. Terminal records come
back to ``active`` only through the daily reset (or, for expired records,
by starting the quest again).

Concurrency
-----------
User and quest-progress rows carry version columns; the
``(user_id, quest_id)`` unique constraint stops duplicate inserts. Both
failure modes are replayed by DatabaseRetryPolicy and surface as
ConflictError when attempts run out.

Events (published after commit)
-------------------------------
quest.started, quest.progress_updated, quest.completed, quest.daily_reset,
plus the award events of XpAwardService and badge.unlocked for quest badges.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select

from rpg_social.core.database.base import ensure_utc, utc_now
from rpg_social.core.database.retry_policy import CONFLICT_EXCEPTIONS, DatabaseRetryPolicy
from rpg_social.core.database.service import DatabaseService
from rpg_social.core.infra.audit_logger import AuditLogger
from rpg_social.core.logging.logger import LogContext, get_logger
from rpg_social.core.validation.input_validator import InputValidator
from rpg_social.database.models.enums import ActionType, Difficulty, QuestStatus, QuestType, ResetType
from rpg_social.database.models.quest import QuestDefinition, QuestProgress
from rpg_social.database.models.user_account import UserAccount
from rpg_social.modules.badges.logic import normalize_badge, with_badge
from rpg_social.modules.quests.logic import (
    apply_progress,
    is_expired,
    is_quest_complete,
    next_reset_at,
    progress_percent,
    requirement_types,
    was_reset_today,
)
from rpg_social.modules.shared.base_repository import BaseRepository
from rpg_social.modules.shared.base_service import BaseService
from rpg_social.modules.shared.constants import DAILY_RESET_HOURS
from rpg_social.modules.shared.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from rpg_social.modules.users.repository import UserAccountRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from rpg_social.core.config.manager import ConfigManager
    from rpg_social.core.event.bus import EventBus
    from rpg_social.modules.progression.xp_service import AwardOutcome, XpAwardService


# ============================================================================
# Repositories
# ============================================================================


class QuestDefinitionRepository(BaseRepository[QuestDefinition]):
    async def find_by_slug(self, session: AsyncSession, slug: str) -> Optional[QuestDefinition]:
        return await self.find_one_where(session, QuestDefinition.slug == slug)

    async def find_active_daily(self, session: AsyncSession) -> List[QuestDefinition]:
        return await self.find_many_where(
            session,
            QuestDefinition.quest_type == QuestType.DAILY.value,
            QuestDefinition.is_active.is_(True),
            order_by=[QuestDefinition.reward_xp, QuestDefinition.id],
        )

    async def find_available(self, session: AsyncSession, level: int) -> List[QuestDefinition]:
        return await self.find_many_where(
            session,
            QuestDefinition.is_active.is_(True),
            QuestDefinition.is_hidden.is_(False),
            QuestDefinition.min_level <= level,
            order_by=[QuestDefinition.reward_xp, QuestDefinition.id],
        )


class QuestProgressRepository(BaseRepository[QuestProgress]):
    async def find_for_user(
        self,
        session: AsyncSession,
        user_id: int,
        status: Optional[QuestStatus] = None,
    ) -> List[QuestProgress]:
        conditions = [QuestProgress.user_id == user_id]
        if status is not None:
            conditions.append(QuestProgress.status == status.value)
        return await self.find_many_where(session, *conditions, order_by=[QuestProgress.id])

    async def find_for_user_and_quest(
        self, session: AsyncSession, user_id: int, quest_id: int
    ) -> Optional[QuestProgress]:
        return await self.find_one_where(
            session,
            QuestProgress.user_id == user_id,
            QuestProgress.quest_id == quest_id,
        )

    async def latest_daily_reset(self, session: AsyncSession, user_id: int) -> Optional[datetime]:
        stmt = (
            select(func.max(QuestProgress.last_reset_at))
            .join(QuestDefinition, QuestDefinition.id == QuestProgress.quest_id)
            .where(
                QuestProgress.user_id == user_id,
                QuestDefinition.quest_type == QuestType.DAILY.value,
            )
        )
        result = await session.execute(stmt)
        return ensure_utc(result.scalar())


# ============================================================================
# QuestProgressService
# ============================================================================


class QuestProgressService(BaseService):
    """
    Public Methods
    --------------
    - seed_quests() -> Upsert quest definitions by slug
    - start_quest() -> Open a quest for a user
    - update_progress() -> Apply one social action to matching active quests
    - reset_daily_quests() -> Reopen/create today's daily quests
    - get_daily_reset_status() -> Whether today's reset already happened
    - get_available_quests() -> Catalog view annotated with the user's state
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: Optional[EventBus],
        logger: Logger,
        xp_service: XpAwardService,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._quest_repo = QuestDefinitionRepository(
            model_class=QuestDefinition,
            logger=get_logger(f"{__name__}.QuestDefinitionRepository"),
        )
        self._progress_repo = QuestProgressRepository(
            model_class=QuestProgress,
            logger=get_logger(f"{__name__}.QuestProgressRepository"),
        )
        self._user_repo = UserAccountRepository(
            model_class=UserAccount,
            logger=get_logger(f"{__name__}.UserAccountRepository"),
        )
        self._xp = xp_service
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()

    # ========================================================================
    # CATALOG
    # ========================================================================

    async def seed_quests(
        self,
        definitions: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> Dict[str, int]:
        """
        Upsert quest definitions keyed by ``slug``.

        Args:
            definitions: Raw definitions; defaults to ``quests.catalog`` config

        Returns:
            {"inserted": int, "updated": int, "total": int}

        Raises:
            ValidationError: If any definition is malformed (nothing is written)
        """
        raw = definitions if definitions is not None else self.get_config("quests.catalog", [])
        normalized = [self._normalize_definition(item) for item in raw]

        slugs = [item["slug"] for item in normalized]
        if len(set(slugs)) != len(slugs):
            raise ValidationError("slug", "Quest slugs must be unique within one seed call")

        self.log_operation("seed_quests", quest_count=len(normalized))

        async def _seed() -> Dict[str, int]:
            inserted = 0
            updated = 0

            async with DatabaseService.get_transaction() as session:
                existing = {
                    row.slug: row
                    for row in await self._quest_repo.find_many_where(
                        session, QuestDefinition.slug.in_(slugs)
                    )
                }

                for values in normalized:
                    row = existing.get(values["slug"])
                    if row is None:
                        session.add(QuestDefinition(**values))
                        inserted += 1
                        continue

                    changed = False
                    for column, value in values.items():
                        if getattr(row, column) != value:
                            setattr(row, column, value)
                            changed = True
                    if changed:
                        updated += 1

            return {"inserted": inserted, "updated": updated, "total": len(normalized)}

        try:
            result = await self._retry.execute(_seed, operation_name="quests.seed")
        except CONFLICT_EXCEPTIONS as exc:
            raise ConflictError("QuestDefinition", "concurrent seeding did not settle") from exc

        self.log.info(
            f"Quests seeded: {result['inserted']} inserted, {result['updated']} updated",
            extra=result,
        )
        return result

    @staticmethod
    def _normalize_definition(raw: Any) -> Dict[str, Any]:
        raw = InputValidator.validate_mapping(raw, "quest", required_keys=("slug", "title", "requirements"))

        requirements_raw = raw["requirements"]
        if not isinstance(requirements_raw, list) or not requirements_raw:
            raise ValidationError("requirements", "Quest needs at least one requirement")

        requirements = []
        for requirement in requirements_raw:
            requirement = InputValidator.validate_mapping(
                requirement, "requirement", required_keys=("type", "target")
            )
            requirements.append(
                {
                    "type": InputValidator.validate_choice(
                        requirement["type"], "requirement_type", ActionType.values()
                    ),
                    "target": InputValidator.validate_positive_integer(
                        requirement["target"], "requirement_target", strict=True
                    ),
                    "description": str(requirement.get("description") or ""),
                }
            )

        reward_badge = raw.get("reward_badge")

        return {
            "slug": InputValidator.validate_string(
                raw["slug"], "slug", min_length=1, max_length=64, allowed_chars="a-z0-9_\\-"
            ),
            "title": InputValidator.validate_string(raw["title"], "title", min_length=1, max_length=120),
            "description": str(raw.get("description") or ""),
            "quest_type": InputValidator.validate_choice(
                raw.get("quest_type", QuestType.DAILY.value), "quest_type", [t.value for t in QuestType]
            ),
            "category": str(raw.get("category") or "general"),
            "difficulty": InputValidator.validate_choice(
                raw.get("difficulty", Difficulty.EASY.value), "difficulty", [d.value for d in Difficulty]
            ),
            "requirements": requirements,
            "reward_xp": InputValidator.validate_non_negative_integer(
                raw.get("reward_xp", 0), "reward_xp", strict=True
            ),
            "reward_coins": InputValidator.validate_non_negative_integer(
                raw.get("reward_coins", 0), "reward_coins", strict=True
            ),
            "reward_badge": normalize_badge(reward_badge) if reward_badge is not None else None,
            "reward_title": raw.get("reward_title"),
            "reset_type": InputValidator.validate_choice(
                raw.get("reset_type", ResetType.NONE.value), "reset_type", [r.value for r in ResetType]
            ),
            "min_level": InputValidator.validate_positive_integer(
                raw.get("min_level", 1), "min_level", strict=True
            ),
            "is_active": bool(raw.get("is_active", True)),
            "is_hidden": bool(raw.get("is_hidden", False)),
        }

    # ========================================================================
    # START
    # ========================================================================

    async def start_quest(self, user_id: int, quest_slug: str) -> Dict[str, Any]:
        """
        Open ``quest_slug`` for a user.

        An expired record is reopened; an active or completed one is a conflict.

        Raises:
            NotFoundError: Unknown user or inactive/unknown quest
            InvalidOperationError: User level below the quest's ``min_level``
            ConflictError: Quest already active or completed for the user
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        quest_slug = InputValidator.validate_string(quest_slug, "quest_slug", min_length=1, max_length=64)

        self.log_operation("start_quest", user_id=user_id, quest_slug=quest_slug)

        async def _start() -> Dict[str, Any]:
            async with DatabaseService.get_transaction() as session:
                user = await self._require_user(session, user_id)

                quest = await self._quest_repo.find_by_slug(session, quest_slug)
                if quest is None or not quest.is_active:
                    raise NotFoundError("QuestDefinition", quest_slug)

                if user.level < quest.min_level:
                    raise InvalidOperationError(
                        "start_quest", f"'{quest.slug}' requires level {quest.min_level}"
                    )

                now = utc_now()
                record = await self._progress_repo.find_for_user_and_quest(session, user_id, quest.id)

                if record is not None and record.status != QuestStatus.EXPIRED.value:
                    raise ConflictError(
                        "QuestProgress", f"quest '{quest.slug}' is already {record.status}", quest.slug
                    )

                if record is None:
                    record = QuestProgress(user_id=user_id, quest_id=quest.id, quest=quest)
                    session.add(record)

                self._reopen(record, quest, now)
                await self._progress_repo.flush(session)

                return self._serialize_record(record, quest)

        try:
            result = await self._retry.execute(
                _start, operation_name="quests.start", context={"user_id": user_id}
            )
        except CONFLICT_EXCEPTIONS as exc:
            raise ConflictError("QuestProgress", "concurrent start did not settle", quest_slug) from exc

        await self.emit_event(
            "quest.started",
            {"user_id": user_id, "quest_id": result["quest_id"], "slug": result["slug"]},
        )
        return result

    # ========================================================================
    # PROGRESS
    # ========================================================================

    async def update_progress(
        self,
        user_id: int,
        action_type: str,
        value: int = 1,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Add ``value`` to ``action_type`` on every active quest that requires it.

        Returns:
            {
                "updated_quests": [{quest_id, slug, title, progress, progress_percent}],
                "completed_quests": [{quest_id, slug, title, rewards: {...}}],
                "expired_quests": [{quest_id, slug, title}],
            }

        Raises:
            ValidationError: Unknown action type or non-positive value
            NotFoundError: Unknown user
            ConflictError: Concurrent updates exhausted the retry budget

        Example:
            >>> result = await quests.update_progress(7, "create_post")
            >>> [q["slug"] for q in result["completed_quests"]]
            ['daily_post']
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        action_type = InputValidator.validate_choice(action_type, "action_type", ActionType.values())
        value = InputValidator.validate_positive_integer(value, "value", strict=True)

        self.log_operation("update_progress", user_id=user_id, action_type=action_type, value=value)

        async def _update() -> Tuple[Dict[str, Any], List[AwardOutcome], List[Dict[str, Any]]]:
            updated_quests: List[Dict[str, Any]] = []
            completed_quests: List[Dict[str, Any]] = []
            expired_quests: List[Dict[str, Any]] = []
            outcomes: List[AwardOutcome] = []
            badges_granted: List[Dict[str, Any]] = []

            async with DatabaseService.get_transaction() as session:
                user = await self._require_user(session, user_id)
                records = await self._progress_repo.find_for_user(session, user_id, QuestStatus.ACTIVE)
                now = utc_now()

                for record in records:
                    quest = record.quest

                    if is_expired(record.expires_at, now):
                        record.status = QuestStatus.EXPIRED.value
                        expired_quests.append(self._quest_ref(quest))
                        continue

                    if action_type not in requirement_types(quest.requirements):
                        continue

                    record.progress = apply_progress(record.progress or {}, action_type, value)
                    updated_quests.append(
                        {
                            **self._quest_ref(quest),
                            "progress": dict(record.progress),
                            "progress_percent": progress_percent(quest.requirements, record.progress),
                        }
                    )

                    if not is_quest_complete(quest.requirements, record.progress):
                        continue

                    record.status = QuestStatus.COMPLETED.value
                    record.completed_at = now
                    user.quests_completed = (user.quests_completed or 0) + 1

                    rewards: Dict[str, Any] = {
                        "xp": quest.reward_xp,
                        "leveled_up": False,
                        "new_level": user.level,
                        "total_xp": user.xp,
                        "badge": None,
                    }

                    if quest.reward_xp > 0:
                        outcome = await self._xp.apply_award(
                            session, user, quest.reward_xp, reason=f"quest_completed:{quest.slug}"
                        )
                        outcomes.append(outcome)
                        rewards.update(
                            leveled_up=outcome.leveled_up,
                            new_level=outcome.level,
                            total_xp=outcome.xp,
                        )

                    if quest.reward_badge:
                        badges = with_badge(user.badges or [], quest.reward_badge, now)
                        if badges is not None:
                            user.badges = badges
                            badges_granted.append(badges[-1])
                            rewards["badge"] = badges[-1]

                    completed_quests.append({**self._quest_ref(quest), "rewards": rewards})

            result = {
                "updated_quests": updated_quests,
                "completed_quests": completed_quests,
                "expired_quests": expired_quests,
            }
            return result, outcomes, badges_granted

        async with LogContext(user_id=user_id, operation="quests.update_progress"):
            try:
                result, outcomes, badges_granted = await self._retry.execute(
                    _update,
                    operation_name="quests.update_progress",
                    context={"user_id": user_id, "action_type": action_type},
                )
            except CONFLICT_EXCEPTIONS as exc:
                raise ConflictError(
                    "QuestProgress", "concurrent progress updates exhausted retries", user_id
                ) from exc

            await self._publish_progress(user_id, action_type, result, outcomes, badges_granted, context)

        return result

    async def _publish_progress(
        self,
        user_id: int,
        action_type: str,
        result: Dict[str, Any],
        outcomes: List[AwardOutcome],
        badges_granted: List[Dict[str, Any]],
        context: Optional[str],
    ) -> None:
        for outcome in outcomes:
            await self._xp.publish_award(outcome, context=context or "quests.update_progress")

        for updated in result["updated_quests"]:
            await self.emit_event(
                "quest.progress_updated",
                {"user_id": user_id, "action_type": action_type, **updated},
            )

        for completed in result["completed_quests"]:
            await AuditLogger.log(
                user_id=user_id,
                transaction_type="quest_completed",
                details={"quest_id": completed["quest_id"], "slug": completed["slug"], **completed["rewards"]},
                context=context or "quests.update_progress",
            )
            await self.emit_event("quest.completed", {"user_id": user_id, **completed})

        for badge in badges_granted:
            await self.emit_event(
                "badge.unlocked", {"user_id": user_id, "badge": badge, "source": "quest"}
            )

        if result["completed_quests"]:
            self.log.info(
                f"User {user_id} completed {len(result['completed_quests'])} quest(s)",
                extra={
                    "user_id": user_id,
                    "completed": [q["slug"] for q in result["completed_quests"]],
                },
            )

    # ========================================================================
    # DAILY RESET
    # ========================================================================

    async def reset_daily_quests(self, user_id: int, context: Optional[str] = None) -> Dict[str, Any]:
        """
        Reopen or create the user's daily quests for today.

        Records already reset during the current UTC day are reported as
        ``unchanged_quests`` and left alone, so calling this repeatedly in one
        day is harmless.

        Returns:
            {reset_quests, new_quests, unchanged_quests, expired_quests,
             total_daily_quests}; quest lists hold titles.
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        self.log_operation("reset_daily_quests", user_id=user_id)

        async def _reset() -> Dict[str, Any]:
            reset_quests: List[str] = []
            new_quests: List[str] = []
            unchanged_quests: List[str] = []
            expired_quests: List[str] = []

            async with DatabaseService.get_transaction() as session:
                await self._require_user(session, user_id)

                daily = await self._quest_repo.find_active_daily(session)
                records = {
                    record.quest_id: record
                    for record in await self._progress_repo.find_for_user(session, user_id)
                }
                now = utc_now()

                for quest in daily:
                    record = records.get(quest.id)

                    if record is None:
                        record = QuestProgress(user_id=user_id, quest_id=quest.id, quest=quest)
                        self._reopen(record, quest, now)
                        session.add(record)
                        records[quest.id] = record
                        new_quests.append(quest.title)
                    elif was_reset_today(record.last_reset_at, now):
                        unchanged_quests.append(quest.title)
                    else:
                        self._reopen(record, quest, now)
                        reset_quests.append(quest.title)

                for record in records.values():
                    if record.status == QuestStatus.ACTIVE.value and is_expired(record.expires_at, now):
                        record.status = QuestStatus.EXPIRED.value
                        expired_quests.append(record.quest.title)

                await self._progress_repo.flush(session)

            return {
                "reset_quests": reset_quests,
                "new_quests": new_quests,
                "unchanged_quests": unchanged_quests,
                "expired_quests": expired_quests,
                "total_daily_quests": len(daily),
            }

        async with LogContext(user_id=user_id, operation="quests.daily_reset"):
            try:
                result = await self._retry.execute(
                    _reset, operation_name="quests.daily_reset", context={"user_id": user_id}
                )
            except CONFLICT_EXCEPTIONS as exc:
                raise ConflictError(
                    "QuestProgress", "concurrent daily reset did not settle", user_id
                ) from exc

            if result["reset_quests"] or result["new_quests"]:
                await AuditLogger.log(
                    user_id=user_id,
                    transaction_type="daily_quests_reset",
                    details={
                        "reset": len(result["reset_quests"]),
                        "new": len(result["new_quests"]),
                        "expired": len(result["expired_quests"]),
                    },
                    context=context or "quests.daily_reset",
                )
                await self.emit_event("quest.daily_reset", {"user_id": user_id, **result})

        return result

    async def get_daily_reset_status(self, user_id: int) -> Dict[str, Any]:
        """
        Returns:
            {needs_reset: bool, last_reset_at: datetime | None,
             next_reset_at: datetime, seconds_until_reset: int}
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            await self._require_user(session, user_id)
            last_reset_at = await self._progress_repo.latest_daily_reset(session, user_id)

        now = utc_now()
        upcoming = next_reset_at(now)

        return {
            "needs_reset": not was_reset_today(last_reset_at, now),
            "last_reset_at": last_reset_at,
            "next_reset_at": upcoming,
            "seconds_until_reset": int((upcoming - now).total_seconds()),
        }

    # ========================================================================
    # READ MODELS
    # ========================================================================

    async def get_available_quests(self, user_id: int) -> List[Dict[str, Any]]:
        """Active, visible quests the user's level allows, with the user's status."""
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            user = await self._require_user(session, user_id)
            quests = await self._quest_repo.find_available(session, user.level)
            records = {
                record.quest_id: record
                for record in await self._progress_repo.find_for_user(session, user_id)
            }

        available = []
        for quest in quests:
            record = records.get(quest.id)
            progress = dict(record.progress or {}) if record is not None else {}
            available.append(
                {
                    **self._quest_ref(quest),
                    "description": quest.description,
                    "quest_type": quest.quest_type,
                    "category": quest.category,
                    "difficulty": quest.difficulty,
                    "requirements": quest.requirements,
                    "reward_xp": quest.reward_xp,
                    "reward_coins": quest.reward_coins,
                    "reward_badge": quest.reward_badge,
                    "reward_title": quest.reward_title,
                    "min_level": quest.min_level,
                    "status": record.status if record is not None else None,
                    "progress": progress,
                    "progress_percent": progress_percent(quest.requirements, progress),
                }
            )
        return available

    # ========================================================================
    # INTERNAL
    # ========================================================================

    async def _require_user(self, session: AsyncSession, user_id: int) -> UserAccount:
        user = await self._user_repo.get(session, user_id)
        if user is None:
            raise NotFoundError("UserAccount", user_id)
        return user

    def _reopen(self, record: QuestProgress, quest: QuestDefinition, now: datetime) -> None:
        """Put ``record`` back at the start of ``quest``."""
        record.status = QuestStatus.ACTIVE.value
        record.progress = {}
        record.started_at = now
        record.completed_at = None

        if quest.quest_type == QuestType.DAILY.value or quest.reset_type == ResetType.DAILY.value:
            hours = int(self.get_config("quests.daily_reset_hours", DAILY_RESET_HOURS))
            record.last_reset_at = now
            record.expires_at = now + timedelta(hours=hours)
        else:
            record.expires_at = None

    @staticmethod
    def _quest_ref(quest: QuestDefinition) -> Dict[str, Any]:
        return {"quest_id": quest.id, "slug": quest.slug, "title": quest.title}

    @staticmethod
    def _serialize_record(record: QuestProgress, quest: QuestDefinition) -> Dict[str, Any]:
        return {
            **QuestProgressService._quest_ref(quest),
            "status": record.status,
            "progress": dict(record.progress or {}),
            "progress_percent": progress_percent(quest.requirements, record.progress or {}),
            "started_at": ensure_utc(record.started_at),
            "completed_at": ensure_utc(record.completed_at),
            "expires_at": ensure_utc(record.expires_at),
        }
