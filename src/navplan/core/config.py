"""Configuration loader for YAML files.

This module provides the navigation computer's settings: built-in defaults,
YAML file loading merged over those defaults, and dot-notation access.

Typical usage example:
    from navplan.core.config import ConfigLoader

    config = ConfigLoader.load_with_defaults("config/navplan.yaml")
    timeout_ms = config.get("facility_lookup.timeout_ms", default=1000)
"""

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    "facility_lookup": {
        "timeout_ms": 1000,
    },
    "flight_plan": {
        "default_cruise_altitude_ft": 0,
        "plan_count": 2,
    },
    "gps": {
        "sync_on_change": True,
    },
}


class ConfigError(Exception):
    """Raised when configuration operations fail."""


class ConfigLoader:
    """Settings container backed by a nested dictionary.

    Examples:
        >>> config = ConfigLoader.defaults()
        >>> config.get("flight_plan.plan_count")
        2
    """

    def __init__(self, data: dict[str, Any]) -> None:
        """Initialize with configuration data.

        Args:
            data: Configuration dictionary.
        """
        self._data = data

    @classmethod
    def defaults(cls) -> "ConfigLoader":
        """Create a configuration holding the built-in defaults.

        Returns:
            ConfigLoader with its own copy of the defaults.
        """
        return cls(copy.deepcopy(DEFAULT_SETTINGS))

    @classmethod
    def load(cls, path: str | Path) -> "ConfigLoader":
        """Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            ConfigLoader instance with loaded data.

        Raises:
            ConfigError: If the file is missing, unreadable or not a mapping.
        """
        path = Path(path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")

        logger.info("Loaded configuration from: %s", path)
        return cls(data)

    @classmethod
    def load_with_defaults(cls, path: str | Path | None = None) -> "ConfigLoader":
        """Load a configuration file over the built-in defaults.

        Args:
            path: Path to YAML configuration file. If None or missing, the
                defaults are returned unchanged.

        Returns:
            ConfigLoader with file values overriding the defaults.

        Raises:
            ConfigError: If the file exists but cannot be loaded.
        """
        config = cls.defaults()

        if path is not None and Path(path).exists():
            config.merge(cls.load(path))
        elif path is not None:
            logger.warning("Configuration file not found, using defaults: %s", path)

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation.

        Args:
            key: Configuration key such as "gps.sync_on_change".
            default: Default value if key not found.

        Returns:
            Configuration value or default.
        """
        value = self._data

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation.

        Intermediate sections are created as needed.

        Args:
            key: Configuration key (supports dot notation).
            value: Value to set.

        Raises:
            ConfigError: If an intermediate key holds a plain value.
        """
        keys = key.split(".")
        data = self._data

        for k in keys[:-1]:
            data = data.setdefault(k, {})
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration key is not a section: {k}")

        data[keys[-1]] = value

    def get_section(self, key: str) -> dict[str, Any]:
        """Get an entire configuration section.

        Args:
            key: Section key (supports dot notation).

        Returns:
            Configuration section as dictionary.

        Raises:
            ConfigError: If section not found or not a dict.
        """
        value = self.get(key)

        if value is None:
            raise ConfigError(f"Configuration section not found: {key}")

        if not isinstance(value, dict):
            raise ConfigError(f"Configuration key is not a section: {key}")

        return value

    def save(self, path: str | Path) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path to save configuration.

        Raises:
            ConfigError: If save fails.
        """
        path = Path(path)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to save configuration: {e}") from e

        logger.info("Saved configuration to: %s", path)

    def merge(self, other: "ConfigLoader") -> None:
        """Merge another configuration into this one.

        Args:
            other: ConfigLoader to merge from. Its values win.
        """
        self._data = _merge_dicts(self._data, other._data)

    def to_dict(self) -> dict[str, Any]:
        """Get a deep copy of the configuration."""
        return copy.deepcopy(self._data)


def _merge_dicts(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    result = base.copy()

    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value

    return result
