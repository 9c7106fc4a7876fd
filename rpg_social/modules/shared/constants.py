"""
RPG-Social Domain Constants

Purpose
-------
Built-in gameplay values: the level curve, tier presentation, feature
unlocks and XP rewards per social action. The YAML files under ``config/``
carry the same values and win when present; these constants are the
fallback when a key is missing.

IMPORTANT:
Gameplay constants only. Infrastructure limits (pool sizes, retry
backoff) live in ``rpg_social.core.config.config.Config``.
"""

from __future__ import annotations

from typing import Any, Dict, Final, List, Tuple

# ============================================================================
# LEVEL CURVE
# ============================================================================

MAX_LEVEL: Final[int] = 100
LEVELS_PER_TIER: Final[int] = 10
LEVEL_CURVE_BASE: Final[int] = 100
LEVEL_CURVE_GROWTH: Final[float] = 1.15
MILESTONE_INTERVAL: Final[int] = 10
UPCOMING_REWARDS_WINDOW: Final[int] = 10

# ============================================================================
# TIERS (every 10 levels)
# ============================================================================

DEFAULT_TIERS: Final[List[Dict[str, Any]]] = [
    {
        "name": "Beginner",
        "color": "#64748b",
        "icon": "🌱",
        "category": "Social",
        "quote": "Every great journey begins with a single step.",
        "description": "You are starting to grow your social circle.",
    },
    {
        "name": "Novice",
        "color": "#06b6d4",
        "icon": "🌿",
        "category": "Explorer",
        "quote": "Every journey begins with a single step.",
        "description": "Your spirit of discovery grows stronger.",
    },
    {
        "name": "Apprentice",
        "color": "#10b981",
        "icon": "🌸",
        "category": "Creator",
        "quote": "Creativity is intelligence having fun.",
        "description": "Your creative potential is coming to light.",
    },
    {
        "name": "Adept",
        "color": "#3b82f6",
        "icon": "🌟",
        "category": "Scholar",
        "quote": "Knowledge shared is knowledge multiplied.",
        "description": "You are becoming a wise guide for others.",
    },
    {
        "name": "Expert",
        "color": "#8b5cf6",
        "icon": "💎",
        "category": "Leader",
        "quote": "Leaders are made, not born.",
        "description": "Your expertise is recognised across the network.",
    },
    {
        "name": "Master",
        "color": "#f59e0b",
        "icon": "👑",
        "category": "Warrior",
        "quote": "Mastery is a journey, not a destination.",
        "description": "You have reached the level of mastery.",
    },
    {
        "name": "Grandmaster",
        "color": "#ef4444",
        "icon": "⚔️",
        "category": "Sage",
        "quote": "The wise learn from everyone.",
        "description": "Few have walked as far as you.",
    },
    {
        "name": "Legend",
        "color": "#ec4899",
        "icon": "🏆",
        "category": "Master",
        "quote": "Legends are remembered for what they shared.",
        "description": "Your name is told in stories.",
    },
    {
        "name": "Mythic",
        "color": "#7c3aed",
        "icon": "🔮",
        "category": "Master",
        "quote": "Myths are truths that outgrew their tellers.",
        "description": "You wield powers out of legend.",
    },
    {
        "name": "Divine",
        "color": "#dc2626",
        "icon": "☀️",
        "category": "Master",
        "quote": "The summit is only the beginning.",
        "description": "You stand at the very top of the world.",
    },
]

# ============================================================================
# FEATURE UNLOCKS (level -> feature ids)
# ============================================================================

DEFAULT_UNLOCK_FEATURES: Final[Dict[int, List[str]]] = {
    5: ["post_creation"],
    10: ["friend_system"],
    15: ["story_creation"],
    20: ["guild_joining"],
    25: ["advanced_messaging"],
    30: ["region_exploration"],
    40: ["guild_creation"],
    50: ["mentorship_program"],
    60: ["leaderboard_top"],
    70: ["special_events"],
    80: ["beta_features"],
    90: ["admin_privileges"],
    100: ["ultimate_mastery"],
}

# ============================================================================
# XP REWARDS PER SOCIAL ACTION
# ============================================================================

DEFAULT_XP_REWARDS: Final[Dict[str, int]] = {
    "post_created": 50,
    "post_liked": 10,
    "comment_created": 25,
    "story_created": 30,
    "story_liked": 15,
    "friend_added": 20,
    "daily_login": 100,
    "quest_completed": 200,
    "guild_joined": 150,
    "achievement_unlocked": 300,
}

# ============================================================================
# QUESTS
# ============================================================================

DAILY_RESET_HOURS: Final[int] = 24
PROGRESS_PERCENT_DECIMALS: Final[int] = 2

# (threshold, suffix) pairs for compact XP display, largest first
XP_DISPLAY_UNITS: Final[Tuple[Tuple[int, str], ...]] = (
    (1_000_000, "M"),
    (1_000, "K"),
)
