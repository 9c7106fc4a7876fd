"""
LevelDefinition: one row per level of the progression table.
Schema only.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rpg_social.core.database.base import Base, IdMixin, JSONType, TimestampMixin


class LevelDefinition(Base, IdMixin, TimestampMixin):
    """
    Seeded catalog row for a single level.

    Fields (schema only):
    - level: 1-based level number (unique, ordering key)
    - xp_required: cumulative XP needed to reach this level
    - xp_to_next: XP between this level and the next (0 at the top)
    - tier / title / quote / description: display data
    - tier_color / icon / category: tier presentation metadata
    - unlocked_features: feature ids granted on reaching this level
    - badges: badge payloads granted on reaching this level
    - unlock_message: optional celebratory text
    - is_active: inactive rows are ignored by lookups
    """

    __tablename__ = "level_definitions"
    __table_args__ = (
        Index("ix_level_definitions_xp_required", "xp_required"),
        Index("ix_level_definitions_tier", "tier"),
    )

    level: Mapped[int] = mapped_column(nullable=False, unique=True)

    xp_required: Mapped[int] = mapped_column(BigInteger, nullable=False)

    xp_to_next: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    tier: Mapped[str] = mapped_column(String(50), nullable=False)

    title: Mapped[str] = mapped_column(String(100), nullable=False)

    quote: Mapped[str] = mapped_column(Text, nullable=False, default="")

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    tier_color: Mapped[str] = mapped_column(String(16), nullable=False, default="#64748b")

    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="")

    category: Mapped[str] = mapped_column(String(50), nullable=False, default="Social")

    unlocked_features: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    badges: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    unlock_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<LevelDefinition(level={self.level}, xp_required={self.xp_required}, tier={self.tier!r})>"
