"""
Base Service Foundation

Services implement business rules, own their transactions through
DatabaseService, and publish domain events once state is committed.

This base class provides:
- Structured logging with operation context
- Safe config access
- Optional event emission (a service without a bus simply does not notify)
- Small validation helpers

It does not manage sessions or contain progression logic.

Usage
-----
    class XpAwardService(BaseService):
        def __init__(self, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional, Type

if TYPE_CHECKING:
    from logging import Logger

    from rpg_social.core.config.manager import ConfigManager
    from rpg_social.core.event.bus import EventBus


class BaseService:
    """
    Args:
        config_manager: ConfigManager class (or a test double with ``get``)
        event_bus: Optional event bus for notifications
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: Optional[EventBus],
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Raises:
            ConfigurationError: If required=True and key is missing
        """
        from rpg_social.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish a domain event. No-op when the service was built without a bus."""
        if self._events is None:
            return
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
            exc_info=True,
        )

    def validate_range(self, value: int, name: str, min_val: int, max_val: int) -> None:
        from .exceptions import ValidationError

        if not (min_val <= value <= max_val):
            raise ValidationError(name, f"{name} must be between {min_val} and {max_val}, got {value}")
