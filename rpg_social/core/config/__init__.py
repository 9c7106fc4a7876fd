"""
Configuration subsystem.

- **config.py**: static configuration from environment variables (.env support)
- **manager.py**: YAML-backed tunables with dot-notation access and
  in-memory overrides
"""

from rpg_social.core.config.config import Config, Environment
from rpg_social.core.config.manager import (
    ConfigInitializationError,
    ConfigManager,
    ConfigManagerError,
)

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigManagerError",
    "ConfigInitializationError",
]
