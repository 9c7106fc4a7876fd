"""
Event system.

In-process publish/subscribe with wildcard routing and priority-based
scheduling. Services receive an optional EventBus; without one they
simply do not notify.
"""

from .bus import EventBus
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
