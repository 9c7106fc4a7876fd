"""
Badge set operations.

A user's badges are a list of dicts treated as a set keyed by ``id``.
Functions here never mutate their inputs: they return a new list so the
ORM sees an assignment and the JSON column is written.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from rpg_social.core.validation.input_validator import InputValidator


def normalize_badge(badge: Any) -> Dict[str, Any]:
    """
    Validate a badge payload and keep its known fields.

    Raises:
        ValidationError: missing/blank ``id`` or ``name``, or not a mapping
    """
    badge = InputValidator.validate_mapping(badge, "badge", required_keys=("id", "name"))

    return {
        "id": InputValidator.validate_string(badge["id"], "badge_id", min_length=1, max_length=100),
        "name": InputValidator.validate_string(badge["name"], "badge_name", min_length=1, max_length=100),
        "icon": str(badge.get("icon") or ""),
        "description": str(badge.get("description") or ""),
    }


def has_badge(badges: Sequence[Mapping[str, Any]], badge_id: str) -> bool:
    return any(existing.get("id") == badge_id for existing in badges)


def with_badge(
    badges: Sequence[Mapping[str, Any]],
    badge: Mapping[str, Any],
    unlocked_at: datetime,
) -> Optional[List[Dict[str, Any]]]:
    """
    Badges plus ``badge`` stamped with ``unlocked_at``.

    Returns ``None`` when a badge with the same id is already present.
    """
    if has_badge(badges, badge["id"]):
        return None
    return [dict(existing) for existing in badges] + [
        {**dict(badge), "unlocked_at": unlocked_at.isoformat()}
    ]
