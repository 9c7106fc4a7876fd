"""
EventBus: in-process publish/subscribe for progression notifications.

Services publish after their transaction commits (``player.leveled_up``,
``quest.completed``, ``badge.unlocked`` ...). Delivery to sockets, feeds or
push notifications is a subscriber concern; a service built without a bus
behaves identically apart from not notifying anyone.

Execution follows EventScheduler's tiered model; listener failures are
isolated and logged.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from rpg_social.core.config.manager import ConfigManager
from rpg_social.core.event.registry import ListenerRegistry
from rpg_social.core.event.scheduler import EventScheduler
from rpg_social.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from rpg_social.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)


class EventBus:
    """
    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("player.leveled_up", on_level_up, priority=ListenerPriority.HIGH)
    >>> await bus.publish("player.leveled_up", {"user_id": 1, "new_level": 5})
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        scheduler: Optional[EventScheduler] = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._registry = registry or ListenerRegistry()
        self._scheduler = scheduler or EventScheduler()
        self._publish_count: dict[str, int] = {}

        self._critical_timeout = self._load_timeout(
            "core.event.listener_timeout.critical_seconds", critical_timeout_seconds, 5.0
        )
        self._high_timeout = self._load_timeout(
            "core.event.listener_timeout.high_seconds", high_timeout_seconds, 5.0
        )

        logger.info(
            "EventBus initialized",
            extra={
                "critical_timeout_seconds": self._critical_timeout,
                "high_timeout_seconds": self._high_timeout,
            },
        )

    @staticmethod
    def _load_timeout(key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: explicit override, then ConfigManager, then default."""
        if override is not None:
            return float(override)
        return float(ConfigManager.get(key, default))

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Reject callbacks that do not take exactly one payload argument."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe ``callback`` to an event name or wildcard pattern.

        Returns
        -------
        str
            The listener identifier, for ``unsubscribe``.

        Raises
        ------
        ValueError
            If the callback signature is invalid.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
        added = self._registry.add_listener(event_name, listener, allow_duplicates=allow_duplicates)

        if added:
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "once": listener.once,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )

        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(event_name, identifier)
        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        total = self._registry.clear_all()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    def listener_count(self) -> int:
        return self._registry.get_total_listener_count()

    def get_publish_counts(self) -> dict[str, int]:
        return dict(self._publish_count)

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all matching listeners.

        Returns
        -------
        list[Any]
            Results from CRITICAL/HIGH/NORMAL listeners (LOW is fire-and-forget).
        """
        self._publish_count[event_name] = self._publish_count.get(event_name, 0) + 1
        set_log_context(event_name=event_name)

        listeners = self._registry.extract_listeners_for_event(event_name)
        if not listeners:
            logger.debug("EventBus: no listeners for event", extra={"event_name": event_name})
            return []

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        return await self._scheduler.execute(
            event_name=event_name,
            payload=data,
            listeners=listeners,
            logger=logger,
            critical_timeout=self._critical_timeout,
            high_timeout=self._high_timeout,
        )

    async def drain(self) -> None:
        """Wait for fire-and-forget listeners to finish. Mostly for shutdown and tests."""
        await self._scheduler.drain()
