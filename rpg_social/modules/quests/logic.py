"""
Quest progress rules.

Pure functions over a quest's ``requirements`` (list of
``{type, target, description}``) and a progress mapping
(action type -> accumulated count). Completion depends only on the final
counts, never on the order updates arrived in.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from rpg_social.core.database.base import ensure_utc


def requirement_types(requirements: Sequence[Mapping[str, Any]]) -> set[str]:
    return {str(requirement["type"]) for requirement in requirements}


def apply_progress(progress: Mapping[str, int], action_type: str, value: int) -> Dict[str, int]:
    """New progress mapping with ``value`` added to ``action_type``."""
    updated = {key: int(count) for key, count in progress.items()}
    updated[action_type] = updated.get(action_type, 0) + value
    return updated


def is_quest_complete(
    requirements: Sequence[Mapping[str, Any]],
    progress: Mapping[str, int],
) -> bool:
    """True when every requirement's target is reached. Empty requirements never complete."""
    if not requirements:
        return False
    return all(
        progress.get(requirement["type"], 0) >= int(requirement["target"])
        for requirement in requirements
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def progress_percent(
    requirements: Sequence[Mapping[str, Any]],
    progress: Mapping[str, int],
) -> int:
    """
    Mean of per-requirement completion, each capped at 100, rounded half up.

    Example:
        >>> progress_percent([{"type": "create_post", "target": 2}], {"create_post": 1})
        50
    """
    if not requirements:
        return 0

    total = 0.0
    for requirement in requirements:
        current = progress.get(requirement["type"], 0)
        total += min(current / int(requirement["target"]) * 100, 100.0)

    return _round_half_up(total / len(requirements))


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    expires_at = ensure_utc(expires_at)
    return expires_at is not None and now > expires_at


def start_of_utc_day(moment: datetime) -> datetime:
    moment = ensure_utc(moment).astimezone(timezone.utc)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def next_reset_at(now: datetime) -> datetime:
    return start_of_utc_day(now) + timedelta(days=1)


def was_reset_today(last_reset_at: Optional[datetime], now: datetime) -> bool:
    last_reset_at = ensure_utc(last_reset_at)
    return last_reset_at is not None and last_reset_at >= start_of_utc_day(now)
