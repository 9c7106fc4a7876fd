"""
Level Service

Purpose
-------
Owns the level catalog: idempotent seeding, cached lookups, and the
progression view used by every other service.

Domain
------
- Seed / upsert LevelDefinition rows by level number
- Resolve XP to a level (table lookup is authoritative)
- Compute progress toward the next level
- Tier listings and upcoming-reward previews

Notes
-----
- Reads use get_session(); seeding uses get_transaction() under the
  database retry policy (two seeders racing on the unique ``level``
  column resolve by retry).
- When no rows exist yet the configured default curve is used and a
  warning is logged, so a fresh database still answers lookups.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from rpg_social.core.database.retry_policy import CONFLICT_EXCEPTIONS, DatabaseRetryPolicy
from rpg_social.core.database.service import DatabaseService
from rpg_social.core.logging.logger import get_logger
from rpg_social.core.validation.input_validator import InputValidator
from rpg_social.database.models.level_definition import LevelDefinition
from rpg_social.modules.levels.table import LevelEntry, LevelTable, build_default_levels
from rpg_social.modules.shared.base_repository import BaseRepository
from rpg_social.modules.shared.base_service import BaseService
from rpg_social.modules.shared.constants import (
    DEFAULT_TIERS,
    DEFAULT_UNLOCK_FEATURES,
    LEVEL_CURVE_BASE,
    LEVEL_CURVE_GROWTH,
    LEVELS_PER_TIER,
    MAX_LEVEL,
    UPCOMING_REWARDS_WINDOW,
)
from rpg_social.modules.shared.exceptions import ConflictError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from rpg_social.core.config.manager import ConfigManager
    from rpg_social.core.event.bus import EventBus


class LevelDefinitionRepository(BaseRepository[LevelDefinition]):
    async def find_active_ordered(self, session: AsyncSession) -> List[LevelDefinition]:
        return await self.find_many_where(
            session,
            LevelDefinition.is_active.is_(True),
            order_by=[LevelDefinition.level],
        )


class LevelService(BaseService):
    """
    Public Methods
    --------------
    - seed_levels() -> Upsert the catalog (default curve when no entries given)
    - get_table() -> Cached LevelTable
    - get_level_by_xp() -> Level reached with a given XP
    - get_progression() -> Progress of (level, xp) toward the next level
    - get_level() / get_levels_by_tier() / get_upcoming_rewards()
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: Optional[EventBus],
        logger: Logger,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._level_repo = LevelDefinitionRepository(
            model_class=LevelDefinition,
            logger=get_logger(f"{__name__}.LevelDefinitionRepository"),
        )
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()
        self._table: Optional[LevelTable] = None

    # ========================================================================
    # DEFAULTS
    # ========================================================================

    def default_entries(self) -> List[LevelEntry]:
        """Level entries generated from the configured curve and tiers."""
        return build_default_levels(
            max_level=int(self.get_config("progression.max_level", MAX_LEVEL)),
            base=int(self.get_config("progression.level_curve.base", LEVEL_CURVE_BASE)),
            growth=float(self.get_config("progression.level_curve.growth", LEVEL_CURVE_GROWTH)),
            tiers=self.get_config("progression.tiers", DEFAULT_TIERS),
            unlock_features=self.get_config("progression.unlock_features", DEFAULT_UNLOCK_FEATURES),
            levels_per_tier=int(self.get_config("progression.levels_per_tier", LEVELS_PER_TIER)),
        )

    # ========================================================================
    # SEEDING
    # ========================================================================

    async def seed_levels(
        self,
        entries: Optional[Sequence[LevelEntry]] = None,
    ) -> Dict[str, int]:
        """
        Upsert level definitions keyed by level number.

        Running it twice with the same entries changes nothing the second
        time. Entries are validated as a whole table before any write, and
        stored levels missing from the new table are deactivated so the
        active rows always match what was validated.

        Returns:
            {"inserted": int, "updated": int, "deactivated": int, "total": int}

        Raises:
            ValidationError: If the entries do not form a valid table
            ConflictError: If concurrent seeders keep colliding
        """
        table = LevelTable(entries if entries is not None else self.default_entries())

        self.log_operation("seed_levels", level_count=len(table))

        async def _seed() -> Dict[str, int]:
            inserted = 0
            updated = 0
            deactivated = 0

            async with DatabaseService.get_transaction() as session:
                existing = {
                    row.level: row
                    for row in await self._level_repo.find_many_where(session)
                }

                for entry in table:
                    values = entry.column_values()
                    row = existing.get(entry.level)

                    if row is None:
                        session.add(LevelDefinition(**values, is_active=True))
                        inserted += 1
                        continue

                    changed = False
                    for column, value in values.items():
                        if getattr(row, column) != value:
                            setattr(row, column, value)
                            changed = True
                    if not row.is_active:
                        row.is_active = True
                        changed = True
                    if changed:
                        updated += 1

                kept_levels = {entry.level for entry in table}
                for level, row in existing.items():
                    if level not in kept_levels and row.is_active:
                        row.is_active = False
                        deactivated += 1

            return {
                "inserted": inserted,
                "updated": updated,
                "deactivated": deactivated,
                "total": len(table),
            }

        try:
            result = await self._retry.execute(_seed, operation_name="seed_levels")
        except CONFLICT_EXCEPTIONS as exc:
            raise ConflictError("LevelDefinition", "concurrent seeding did not settle") from exc

        self.invalidate_cache()

        self.log.info(
            f"Levels seeded: {result['inserted']} inserted, {result['updated']} updated, "
            f"{result['deactivated']} deactivated",
            extra=result,
        )
        return result

    # ========================================================================
    # TABLE CACHE
    # ========================================================================

    def invalidate_cache(self) -> None:
        self._table = None

    async def get_table(self, session: Optional[AsyncSession] = None) -> LevelTable:
        """
        Return the cached level table, loading it on first use.

        Args:
            session: Reuse an open session (e.g. inside a write transaction)
        """
        if self._table is not None:
            return self._table

        if session is not None:
            rows = await self._level_repo.find_active_ordered(session)
        else:
            async with DatabaseService.get_session() as read_session:
                rows = await self._level_repo.find_active_ordered(read_session)

        if rows:
            table = LevelTable([LevelEntry.from_model(row) for row in rows])
        else:
            self.log.warning(
                "No level definitions stored; using configured default table",
                extra={"operation": "get_table"},
            )
            table = LevelTable(self.default_entries())

        self._table = table
        return table

    # ========================================================================
    # LOOKUPS
    # ========================================================================

    async def get_level_by_xp(self, xp: int) -> Dict[str, Any]:
        xp = InputValidator.validate_integer(xp, "xp", strict=True)
        table = await self.get_table()
        return table.get_level_by_xp(xp).to_dict()

    async def get_progression(self, current_level: int, xp: int) -> Dict[str, Any]:
        """
        Progress of ``xp`` inside ``current_level``.

        Returns:
            {current_level, next_level, xp, xp_into_level, xp_for_next,
             percent, is_max_level}
        """
        current_level = InputValidator.validate_integer(current_level, "current_level", strict=True)
        xp = InputValidator.validate_integer(xp, "xp", strict=True)

        table = await self.get_table()
        return table.get_level_progression(current_level, xp).to_dict()

    async def get_level(self, level: int) -> Dict[str, Any]:
        level = InputValidator.validate_positive_integer(level, "level", strict=True)
        table = await self.get_table()

        entry = table.get(level)
        if entry is None:
            raise NotFoundError("LevelDefinition", level)
        return entry.to_dict()

    async def get_levels_by_tier(self, tier: str) -> List[Dict[str, Any]]:
        tier = InputValidator.validate_string(tier, "tier", min_length=1, max_length=50)
        table = await self.get_table()

        entries = table.by_tier(tier)
        if not entries:
            raise NotFoundError("Tier", tier)
        return [entry.to_dict() for entry in entries]

    async def get_upcoming_rewards(
        self,
        level: int,
        window: Optional[int] = None,
        limit: Optional[int] = 5,
    ) -> List[Dict[str, Any]]:
        level = InputValidator.validate_positive_integer(level, "level", strict=True)
        window = window or int(self.get_config("progression.upcoming_rewards_window", UPCOMING_REWARDS_WINDOW))

        table = await self.get_table()
        return table.upcoming_rewards(level, window, limit=limit)
