"""
Database Model Enums
====================

Lightweight enumerations for categorical columns. Columns store the
``.value`` string; services compare against the enum.
"""

from __future__ import annotations

import enum


class QuestType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    ACHIEVEMENT = "achievement"
    SOCIAL = "social"
    CONTENT = "content"
    EXPLORATION = "exploration"


class QuestStatus(str, enum.Enum):
    """
    Lifecycle of a user's quest record.

    ``active -> completed`` or ``active -> expired``; terminal states come
    back to ``active`` only through the daily reset.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ResetType(str, enum.Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    LEGENDARY = "legendary"


class ActionType(str, enum.Enum):
    """Social actions that advance quest requirements."""

    CREATE_POST = "create_post"
    LIKE_POSTS = "like_posts"
    COMMENT_POSTS = "comment_posts"
    FOLLOW_USERS = "follow_users"
    VISIT_REGIONS = "visit_regions"
    LEVEL_UP = "level_up"
    SHARE_POST = "share_post"
    JOIN_GUILD = "join_guild"
    COMPLETE_PROFILE = "complete_profile"
    UPLOAD_AVATAR = "upload_avatar"
    LOGIN_DAYS = "login_days"
    INTERACT_WITH_CLASS = "interact_with_class"
    HELP_NEWBIE = "help_newbie"
    EXPLORE_FEATURE = "explore_feature"
    CREATE_STORY = "create_story"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]
