"""
Progression Calculator

Pure functions mapping XP to a level and to progress toward the next level.

Both lookups operate on ``thresholds``: the ordered ``xp_required`` column
of the level table, where ``thresholds[i]`` is the XP needed for level
``i + 1`` and ``thresholds[0] == 0``. Linear and binary search must agree
for every input; the binary version is the one services use.

No database access, no config access, no side effects.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence

from rpg_social.modules.shared.constants import PROGRESS_PERCENT_DECIMALS


@dataclass(frozen=True)
class ProgressionSnapshot:
    """
    Position of a user inside a level band.

    ``next_level`` and ``xp_for_next`` are ``None`` at the top level, where
    ``percent`` is pinned to 100.
    """

    current_level: int
    next_level: Optional[int]
    xp: int
    xp_into_level: int
    xp_for_next: Optional[int]
    percent: float
    is_max_level: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def find_level_linear(thresholds: Sequence[int], xp: int) -> int:
    """
    Highest level whose threshold is <= xp, scanning in order.

    XP below the first threshold clamps to level 1.

    Example:
        >>> find_level_linear([0, 100, 300], 150)
        2
    """
    level = 1
    for index, required in enumerate(thresholds):
        if required <= xp:
            level = index + 1
        else:
            break
    return level


def find_level_binary(thresholds: Sequence[int], xp: int) -> int:
    """
    Same contract as :func:`find_level_linear` in O(log n).

    Example:
        >>> find_level_binary([0, 100, 300], 300)
        3
    """
    return max(1, bisect_right(thresholds, xp))


def progress_ratio(xp_into_level: int, band_size: int) -> float:
    """Percent of a band covered, clamped to [0, 100] and rounded."""
    if band_size <= 0:
        return 100.0
    percent = min(max(xp_into_level, 0) / band_size * 100, 100.0)
    return round(percent, PROGRESS_PERCENT_DECIMALS)


def compute_progression(
    thresholds: Sequence[int],
    current_level: int,
    xp: int,
) -> ProgressionSnapshot:
    """
    Progress of ``xp`` inside the band of ``current_level``.

    ``current_level`` is taken as given (it is the stored, cached level) and
    clamped to ``[1, len(thresholds)]``; negative ``xp`` is treated as 0.

    Example:
        >>> compute_progression([0, 100, 300], 2, 150).percent
        25.0
    """
    if not thresholds:
        raise ValueError("thresholds must not be empty")

    max_level = len(thresholds)
    level = min(max(current_level, 1), max_level)
    xp = max(xp, 0)

    current_required = thresholds[level - 1]
    xp_into_level = max(0, xp - current_required)

    if level == max_level:
        return ProgressionSnapshot(
            current_level=level,
            next_level=None,
            xp=xp,
            xp_into_level=xp_into_level,
            xp_for_next=None,
            percent=100.0,
            is_max_level=True,
        )

    next_required = thresholds[level]
    return ProgressionSnapshot(
        current_level=level,
        next_level=level + 1,
        xp=xp,
        xp_into_level=xp_into_level,
        xp_for_next=max(0, next_required - xp),
        percent=progress_ratio(xp_into_level, next_required - current_required),
        is_max_level=False,
    )
