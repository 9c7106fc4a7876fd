"""
Audit trail logger for progression state changes.

Purpose
-------
Shape every committed XP award, level-up, quest completion, reset and badge
unlock into one canonical audit record. The record is written to the
dedicated ``rpg_social.audit`` logger (and from there to the JSON log file)
and, when an EventBus is bound, published as ``audit.transaction.logged`` so
a consumer can persist it.

Canonical Event Shape
---------------------
{
    "timestamp": str,          # ISO8601 UTC
    "user_id": int,
    "transaction_type": str,   # xp_awarded, quest_completed, badge_unlocked ...
    "details": dict,
    "context": str,            # originating operation
}

Design Decisions
----------------
- Called after commit, so an audit record always describes durable state.
- Invalid payloads raise ValidationError; the caller passed bad data.
- Publish failures are logged, never raised: a broken audit
  consumer must not undo an award the user already has.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from rpg_social.core.logging.logger import get_logger
from rpg_social.core.validation.input_validator import InputValidator

if TYPE_CHECKING:
    from rpg_social.core.event.bus import EventBus

logger = get_logger(__name__)
audit_log = get_logger("rpg_social.audit")


class AuditLogger:
    """
    Write-only audit producer.

    Usage
    -----
    >>> await AuditLogger.log(
    ...     user_id=7,
    ...     transaction_type="xp_awarded",
    ...     details={"amount": 50, "reason": "post_created"},
    ...     context="xp.award",
    ... )
    """

    EVENT_NAME: str = "audit.transaction.logged"

    _event_bus: Optional["EventBus"] = None

    @classmethod
    def bind_event_bus(cls, event_bus: Optional["EventBus"]) -> None:
        cls._event_bus = event_bus

    @classmethod
    async def log(
        cls,
        *,
        user_id: int,
        transaction_type: str,
        details: Mapping[str, Any],
        context: Optional[str] = None,
    ) -> None:
        """
        Record one audit transaction.

        Raises
        ------
        ValidationError
            If ``user_id`` or ``transaction_type`` is malformed.
        """
        InputValidator.validate_entity_id(user_id, "user_id")
        InputValidator.validate_string(
            transaction_type, "transaction_type", min_length=1, max_length=64
        )

        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_id": user_id,
            "transaction_type": transaction_type,
            "details": dict(details),
            "context": context or "unknown",
        }

        audit_log.info(f"audit {transaction_type}", extra={"audit": payload})

        if cls._event_bus is not None:
            try:
                await cls._event_bus.publish(cls.EVENT_NAME, payload)
            except Exception as exc:
                logger.error(
                    "Failed to publish audit event",
                    extra={
                        "user_id": user_id,
                        "transaction_type": transaction_type,
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
