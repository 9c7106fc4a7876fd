"""
UserAccount: a user's progression record.
Schema only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rpg_social.core.database.base import Base, IdMixin, JSONType, TimestampMixin

if TYPE_CHECKING:
    from .quest import QuestProgress


class UserAccount(Base, IdMixin, TimestampMixin):
    """
    Progression state embedded in the user record.

    ``level`` is a cached view of ``xp`` and both are written in the same
    versioned UPDATE. ``version`` is the optimistic-concurrency counter:
    SQLAlchemy adds ``WHERE version = :old`` to every UPDATE and raises
    StaleDataError when another writer got there first.

    Fields (schema only):
    - username: unique handle
    - xp: accumulated experience, never decreases
    - level: max level whose xp_required <= xp
    - quests_completed: lifetime completed quest count
    - total_xp_gained: sum of applied awards
    - badges: list of {id, name, icon, description, unlocked_at}
    - level_history: list of {level, achieved_at, xp_at_achievement, reason}
    - version: optimistic lock counter
    """

    __tablename__ = "user_accounts"
    __table_args__ = (
        Index("ix_user_accounts_level", "level"),
        Index("ix_user_accounts_xp", "xp"),
    )

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    level: Mapped[int] = mapped_column(nullable=False, default=1)

    quests_completed: Mapped[int] = mapped_column(nullable=False, default=0)

    total_xp_gained: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    badges: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    level_history: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )

    version: Mapped[int] = mapped_column(nullable=False, default=1, doc="Optimistic locking version")

    quest_progress: Mapped[List["QuestProgress"]] = relationship(
        "QuestProgress",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<UserAccount(id={self.id}, username={self.username!r}, xp={self.xp}, level={self.level})>"
