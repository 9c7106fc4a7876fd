"""
Progression display formulas.

Pure helpers used by the user progression read model and level-up
notifications. Parameters are passed in explicitly; nothing here reads
config.

Usage
-----
    from rpg_social.modules.progression.formulas import format_xp, next_milestone

    format_xp(1234)        # "1.2K"
    next_milestone(17)     # 20
"""

from __future__ import annotations

from typing import Any, Dict, Sequence

from rpg_social.modules.shared.constants import (
    LEVELS_PER_TIER,
    MAX_LEVEL,
    MILESTONE_INTERVAL,
    XP_DISPLAY_UNITS,
)


def format_xp(xp: int) -> str:
    """
    Compact XP label with one decimal for thousands and millions.

    Example:
        >>> format_xp(999)
        '999'
        >>> format_xp(3_400_000)
        '3.4M'
    """
    for threshold, suffix in XP_DISPLAY_UNITS:
        if xp >= threshold:
            return f"{xp / threshold:.1f}{suffix}"
    return str(xp)


def next_milestone(
    level: int,
    interval: int = MILESTONE_INTERVAL,
    max_level: int = MAX_LEVEL,
) -> int:
    """
    Next multiple of ``interval`` strictly above ``level``, capped at ``max_level``.

    Example:
        >>> next_milestone(10)
        20
        >>> next_milestone(100)
        100
    """
    milestone = (level // interval + 1) * interval
    return min(milestone, max_level)


def tier_index_for_level(level: int, levels_per_tier: int = LEVELS_PER_TIER) -> int:
    """Zero-based tier index; level 1-10 is tier 0."""
    return (max(level, 1) - 1) // levels_per_tier


def tier_for_level(
    level: int,
    tiers: Sequence[Dict[str, Any]],
    levels_per_tier: int = LEVELS_PER_TIER,
) -> Dict[str, Any]:
    """
    Tier metadata (name, color, icon, category) for ``level``.

    Levels past the last configured tier stay in the last tier.
    """
    if not tiers:
        raise ValueError("tiers must not be empty")
    index = min(tier_index_for_level(level, levels_per_tier), len(tiers) - 1)
    return dict(tiers[index])


def tier_progress_percent(level: int, levels_per_tier: int = LEVELS_PER_TIER) -> float:
    """Share of the current tier's levels already reached, level included."""
    position = (max(level, 1) - 1) % levels_per_tier + 1
    return round(position / levels_per_tier * 100, 2)
