"""
Database Models Package
========================

SQLAlchemy ORM models for the progression engine.

- Schema-only, no business logic
- ``Mapped[]`` syntax with ``mapped_column()``
- Optimistic locking via ``version`` columns on mutable per-user rows
- ``JSONType`` (JSONB on PostgreSQL) for flexible payloads
"""

from rpg_social.core.database.base import Base

from .enums import ActionType, Difficulty, QuestStatus, QuestType, ResetType
from .level_definition import LevelDefinition
from .quest import QuestDefinition, QuestProgress
from .user_account import UserAccount

__all__ = [
    "Base",
    "ActionType",
    "Difficulty",
    "QuestStatus",
    "QuestType",
    "ResetType",
    "LevelDefinition",
    "QuestDefinition",
    "QuestProgress",
    "UserAccount",
]
