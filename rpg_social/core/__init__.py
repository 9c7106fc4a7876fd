"""
Core infrastructure layer.

Purpose
-------
One import surface for the infrastructure subsystems:

- Configuration (Config, ConfigManager)
- Database (DatabaseService, retry policy, ORM base)
- Logging (structured logging, LogContext)
- Events (EventBus)
- Validation (InputValidator)
- Infrastructure exceptions

Non-Responsibilities
--------------------
- Business logic (lives in ``rpg_social.modules``)

Feature modules import from the concrete submodules; this package only
re-exports the most common primitives.
"""

from rpg_social.core.config.config import Config
from rpg_social.core.config.manager import ConfigManager
from rpg_social.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
    RpgInfrastructureException,
)
from rpg_social.core.logging.logger import LogContext, get_logger

__all__ = [
    "Config",
    "ConfigManager",
    "ConfigurationError",
    "DatabaseError",
    "ErrorSeverity",
    "RpgInfrastructureException",
    "LogContext",
    "get_logger",
]
