"""
Level Table

In-memory, validated view of the level catalog. Built either from seeded
``LevelDefinition`` rows or from the configured default curve, and
immutable once built.

Invariants enforced at construction:
- levels are contiguous starting at 1
- level 1 requires 0 XP
- ``xp_required`` is strictly increasing
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from rpg_social.modules.progression.calculator import (
    ProgressionSnapshot,
    compute_progression,
    find_level_binary,
)
from rpg_social.modules.shared.constants import (
    DEFAULT_TIERS,
    DEFAULT_UNLOCK_FEATURES,
    LEVEL_CURVE_BASE,
    LEVEL_CURVE_GROWTH,
    LEVELS_PER_TIER,
    MAX_LEVEL,
)
from rpg_social.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from rpg_social.database.models.level_definition import LevelDefinition


@dataclass(frozen=True)
class LevelEntry:
    level: int
    xp_required: int
    tier: str
    title: str
    quote: str = ""
    description: str = ""
    xp_to_next: int = 0
    tier_color: str = "#64748b"
    icon: str = ""
    category: str = "Social"
    unlocked_features: Tuple[str, ...] = ()
    badges: Tuple[Dict[str, Any], ...] = field(default=())
    unlock_message: Optional[str] = None

    @classmethod
    def from_model(cls, row: LevelDefinition) -> LevelEntry:
        return cls(
            level=row.level,
            xp_required=row.xp_required,
            tier=row.tier,
            title=row.title,
            quote=row.quote or "",
            description=row.description or "",
            xp_to_next=row.xp_to_next or 0,
            tier_color=row.tier_color,
            icon=row.icon or "",
            category=row.category,
            unlocked_features=tuple(row.unlocked_features or ()),
            badges=tuple(dict(badge) for badge in (row.badges or ())),
            unlock_message=row.unlock_message,
        )

    @property
    def has_rewards(self) -> bool:
        return bool(self.unlocked_features or self.badges)

    def column_values(self) -> Dict[str, Any]:
        """Values for a ``LevelDefinition`` insert or update."""
        return {
            "level": self.level,
            "xp_required": self.xp_required,
            "xp_to_next": self.xp_to_next,
            "tier": self.tier,
            "title": self.title,
            "quote": self.quote,
            "description": self.description,
            "tier_color": self.tier_color,
            "icon": self.icon,
            "category": self.category,
            "unlocked_features": list(self.unlocked_features),
            "badges": [dict(badge) for badge in self.badges],
            "unlock_message": self.unlock_message,
        }

    def to_dict(self) -> Dict[str, Any]:
        return self.column_values()


class LevelTable:
    """
    Ordered, validated level catalog.

    Raises:
        ValidationError: if the entries break contiguity, the zero start,
            or strict monotonicity of ``xp_required``.
    """

    def __init__(self, entries: Sequence[LevelEntry]) -> None:
        ordered = sorted(entries, key=lambda entry: entry.level)
        self._validate(ordered)
        self._entries: Tuple[LevelEntry, ...] = tuple(ordered)
        self._thresholds: Tuple[int, ...] = tuple(entry.xp_required for entry in ordered)

    @staticmethod
    def _validate(entries: Sequence[LevelEntry]) -> None:
        if not entries:
            raise ValidationError("levels", "Level table cannot be empty")

        if entries[0].level != 1:
            raise ValidationError("levels", f"Level table must start at 1, got {entries[0].level}")

        if entries[0].xp_required != 0:
            raise ValidationError(
                "levels", f"Level 1 must require 0 XP, got {entries[0].xp_required}"
            )

        for previous, current in zip(entries, entries[1:]):
            if current.level != previous.level + 1:
                raise ValidationError(
                    "levels",
                    f"Levels must be contiguous: {previous.level} is followed by {current.level}",
                )
            if current.xp_required <= previous.xp_required:
                raise ValidationError(
                    "levels",
                    f"xp_required must strictly increase: level {current.level} "
                    f"({current.xp_required}) <= level {previous.level} ({previous.xp_required})",
                )

    # ------------------------------------------------------------------
    # Collection protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LevelEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> Tuple[LevelEntry, ...]:
        return self._entries

    @property
    def thresholds(self) -> Tuple[int, ...]:
        return self._thresholds

    @property
    def max_level(self) -> int:
        return self._entries[-1].level

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def clamp_level(self, level: int) -> int:
        return min(max(level, 1), self.max_level)

    def get(self, level: int) -> Optional[LevelEntry]:
        if 1 <= level <= self.max_level:
            return self._entries[level - 1]
        return None

    def get_level_by_xp(self, xp: int) -> LevelEntry:
        """Highest level whose ``xp_required <= xp``, clamped to the table."""
        return self._entries[find_level_binary(self._thresholds, xp) - 1]

    def get_level_progression(self, current_level: int, xp: int) -> ProgressionSnapshot:
        return compute_progression(self._thresholds, current_level, xp)

    def by_tier(self, tier: str) -> List[LevelEntry]:
        return [entry for entry in self._entries if entry.tier.lower() == tier.lower()]

    def tiers(self) -> List[str]:
        seen: Dict[str, None] = {}
        for entry in self._entries:
            seen.setdefault(entry.tier, None)
        return list(seen)

    def rewards_between(self, old_level: int, new_level: int) -> List[Dict[str, Any]]:
        """Rewards of every level in ``(old_level, new_level]`` that carries any."""
        return [
            {
                "level": entry.level,
                "title": entry.title,
                "unlocked_features": list(entry.unlocked_features),
                "badges": [dict(badge) for badge in entry.badges],
                "unlock_message": entry.unlock_message,
            }
            for entry in self._entries
            if old_level < entry.level <= new_level and entry.has_rewards
        ]

    def upcoming_rewards(self, level: int, window: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        rewards = self.rewards_between(level, level + window)
        return rewards[:limit] if limit is not None else rewards


# ============================================================================
# Default table
# ============================================================================


def xp_required_for(level: int, base: int = LEVEL_CURVE_BASE, growth: float = LEVEL_CURVE_GROWTH) -> int:
    """Cumulative XP for ``level``: 0 for level 1, ``floor(base * growth^(level-1))`` after."""
    if level <= 1:
        return 0
    return math.floor(base * growth ** (level - 1))


def build_default_levels(
    max_level: int = MAX_LEVEL,
    base: int = LEVEL_CURVE_BASE,
    growth: float = LEVEL_CURVE_GROWTH,
    tiers: Optional[Sequence[Mapping[str, Any]]] = None,
    unlock_features: Optional[Mapping[int, Sequence[str]]] = None,
    levels_per_tier: int = LEVELS_PER_TIER,
) -> List[LevelEntry]:
    """
    Generate the default catalog from the exponential curve.

    Each block of ``levels_per_tier`` levels shares a tier; the last level
    of a block carries a ``"{tier} Master"`` badge.
    """
    tiers = list(tiers or DEFAULT_TIERS)
    features = {int(level): list(ids) for level, ids in (unlock_features or DEFAULT_UNLOCK_FEATURES).items()}

    thresholds = [xp_required_for(level, base, growth) for level in range(1, max_level + 1)]

    entries: List[LevelEntry] = []
    for level in range(1, max_level + 1):
        tier = tiers[min((level - 1) // levels_per_tier, len(tiers) - 1)]
        tier_name = tier["name"]
        icon = tier.get("icon", "")

        badges: Tuple[Dict[str, Any], ...] = ()
        if level % levels_per_tier == 0:
            badges = (
                {
                    "id": f"{tier_name.lower()}_master_{level}",
                    "name": f"{tier_name} Master",
                    "icon": icon,
                    "description": f"Completed level {level} of the {tier_name} tier",
                },
            )

        xp_required = thresholds[level - 1]
        xp_to_next = thresholds[level] - xp_required if level < max_level else 0

        entries.append(
            LevelEntry(
                level=level,
                xp_required=xp_required,
                tier=tier_name,
                title=f"{tier_name} {level}",
                quote=tier.get("quote", ""),
                description=tier.get("description", ""),
                xp_to_next=xp_to_next,
                tier_color=tier.get("color", "#64748b"),
                icon=icon,
                category=tier.get("category", "Social"),
                unlocked_features=tuple(features.get(level, ())),
                badges=badges,
                unlock_message=f"{icon} Congratulations! You reached level {level}!".strip(),
            )
        )

    return entries
