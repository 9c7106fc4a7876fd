"""
ConfigManager: dot-notation access to tunable progression configuration.

Purpose
-------
- Provide hierarchical access to balance values (level curve, tiers, XP
  reward table, daily reset window, quest catalog).
- Back configuration with YAML files under ``Config.CONFIG_DIR``.
- Allow in-memory overrides so balance can change without a redeploy.

Responsibilities
----------------
- Load and deep-merge every YAML file in the config directory.
- Serve reads from an in-memory cache with a fallback to YAML defaults.
- Apply and clear runtime overrides, logging each change.

Key Design Decisions
--------------------
- YAML is the single source of defaults; overrides live only in memory.
- Reads never raise; a missing key returns the caller's default.
- Reading before ``initialize()`` lazily bootstraps from YAML.

Dependencies
------------
- PyYAML for parsing ``config/*.yaml``.
- ``rpg_social.core.logging.logger.get_logger`` for structured logs.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from rpg_social.core.config.config import Config
from rpg_social.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigInitializationError(ConfigManagerError):
    """Raised when ConfigManager cannot initialize correctly."""


__all__ = ["ConfigManager", "ConfigManagerError", "ConfigInitializationError"]


# ============================================================================
# ConfigManager
# ============================================================================


class ConfigManager:
    """
    Tunable configuration with YAML backing and in-memory overrides.

    Examples
    --------
    >>> ConfigManager.initialize()
    >>> ConfigManager.get("progression.level_curve.growth")
    1.15
    >>> ConfigManager.set_override("progression.xp_rewards.post_created", 75)
    """

    _cache: Dict[str, Any] = {}
    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> Dict[str, Any]:
        """
        Recursively load all YAML config files from ``config_dir``.

        Files are merged in sorted path order so later files win on conflicts.
        A file that fails to parse raises ``ConfigInitializationError``.
        """
        defaults: Dict[str, Any] = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return defaults

        yaml_files = sorted(list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml")))
        if not yaml_files:
            logger.info(
                "No YAML config files discovered",
                extra={"config_dir": str(config_dir)},
            )
            return defaults

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.error(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise ConfigInitializationError(f"Invalid config file: {yaml_file}") from exc

            if isinstance(data, dict):
                cls._deep_merge_dict(defaults, data)
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": len(yaml_files), "top_level_keys": len(defaults)},
        )
        return defaults

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Load YAML defaults (idempotent).

        Parameters
        ----------
        config_dir:
            Directory to read instead of ``Config.CONFIG_DIR``.
        """
        if cls._initialized and (config_dir is None or config_dir == cls._config_dir):
            return

        cls._config_dir = Path(config_dir) if config_dir is not None else Config.CONFIG_DIR
        cls._defaults = cls._load_yaml_configs(cls._config_dir)
        cls._rebuild_cache()
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={"config_dir": str(cls._config_dir), "config_count": len(cls._cache)},
        )

    @classmethod
    def reset(cls) -> None:
        """Drop all state. Used by tests."""
        cls._cache = {}
        cls._defaults = {}
        cls._overrides = {}
        cls._initialized = False
        cls._config_dir = None

    @classmethod
    def _rebuild_cache(cls) -> None:
        cache = copy.deepcopy(cls._defaults)
        for key, value in cls._overrides.items():
            cls._assign(cache, key, value)
        cls._cache = cache

    @staticmethod
    def _assign(target: Dict[str, Any], key: str, value: Any) -> None:
        parts = key.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)

    # =========================================================================
    # OVERRIDES
    # =========================================================================

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """
        Override a configuration value in memory.

        Parameters
        ----------
        key:
            Dot-notation path (e.g. ``"progression.xp_rewards.post_created"``).
        value:
            Replacement value. Nested dicts replace the whole subtree.
        """
        if not key or not isinstance(key, str):
            raise ConfigManagerError("Config key must be a non-empty string")

        if not cls._initialized:
            cls.initialize()

        old_value = cls.get(key)
        cls._overrides[key] = copy.deepcopy(value)
        cls._assign(cls._cache, key, value)

        logger.info(
            "Config override applied",
            extra={"config_key": key, "old_value": old_value, "new_value": value},
        )

    @classmethod
    def clear_overrides(cls) -> None:
        cleared = len(cls._overrides)
        cls._overrides = {}
        cls._rebuild_cache()
        logger.info("Config overrides cleared", extra={"cleared_count": cleared})

    # =========================================================================
    # READ API
    # =========================================================================

    @staticmethod
    def _traverse(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
            if value is None:
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Returns ``default`` when the key is missing from both the cache and
        the YAML defaults. The returned object is a copy for container types.

        Examples
        --------
        >>> ConfigManager.get("progression.max_level", 100)
        100
        """
        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; loading YAML defaults"
            )
            cls.initialize()

        value = cls._traverse(cls._cache, key)
        if value is not None:
            return copy.deepcopy(value) if isinstance(value, (dict, list)) else value

        fallback = cls._traverse(cls._defaults, key)
        if fallback is not None:
            return copy.deepcopy(fallback)
        return default
