"""
QuestDefinition and QuestProgress.
Schema only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rpg_social.core.database.base import Base, BigIntegerId, IdMixin, JSONType, TimestampMixin, utc_now

from .enums import Difficulty, QuestStatus, QuestType, ResetType

if TYPE_CHECKING:
    from .user_account import UserAccount


class QuestDefinition(Base, IdMixin, TimestampMixin):
    """
    Catalog entry for a quest.

    Fields (schema only):
    - slug: stable unique key used for seeding and lookups
    - quest_type / category / difficulty: classification
    - requirements: list of {type, target, description}
    - reward_xp / reward_coins / reward_badge / reward_title: completion rewards
    - reset_type: none | daily | weekly
    - min_level: lowest level allowed to start the quest
    - is_active / is_hidden: catalog visibility
    """

    __tablename__ = "quest_definitions"
    __table_args__ = (
        Index("ix_quest_definitions_type_active", "quest_type", "is_active"),
        Index("ix_quest_definitions_min_level", "min_level"),
    )

    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    title: Mapped[str] = mapped_column(String(120), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    quest_type: Mapped[str] = mapped_column(String(20), nullable=False, default=QuestType.DAILY.value)

    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")

    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default=Difficulty.EASY.value)

    requirements: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    reward_xp: Mapped[int] = mapped_column(nullable=False, default=0)

    reward_coins: Mapped[int] = mapped_column(nullable=False, default=0)

    reward_badge: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    reward_title: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    reset_type: Mapped[str] = mapped_column(String(20), nullable=False, default=ResetType.NONE.value)

    min_level: Mapped[int] = mapped_column(nullable=False, default=1)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<QuestDefinition(slug={self.slug!r}, type={self.quest_type!r})>"


class QuestProgress(Base, IdMixin, TimestampMixin):
    """
    One user's progress on one quest.

    Exactly one row per (user_id, quest_id); the unique constraint turns a
    concurrent duplicate insert into an IntegrityError the caller retries.
    """

    __tablename__ = "quest_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_quest_progress_user_quest"),
        Index("ix_quest_progress_user_status", "user_id", "status"),
    )

    user_id: Mapped[int] = mapped_column(
        BigIntegerId,
        ForeignKey("user_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quest_id: Mapped[int] = mapped_column(
        BigIntegerId,
        ForeignKey("quest_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=QuestStatus.ACTIVE.value)

    progress: Mapped[Dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    last_reset_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1, doc="Optimistic locking version")

    quest: Mapped["QuestDefinition"] = relationship("QuestDefinition", lazy="selectin")

    user: Mapped["UserAccount"] = relationship("UserAccount", back_populates="quest_progress")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<QuestProgress(user_id={self.user_id}, quest_id={self.quest_id}, "
            f"status={self.status!r})>"
        )
