"""Logging system for the navigation computer.

This module provides YAML-configured logging with per-component loggers,
platform-aware log locations, and startup-based rotation.

Platform-specific log locations:
    - macOS: ~/Library/Logs/NavPlan/navplan.log
    - Linux: ~/.navplan/logs/navplan.log
    - Windows: %AppData%/NavPlan/Logs/navplan.log

Each start rotates logs, keeping the last 5 launches.

Typical usage example:
    from navplan.core.logging_system import get_logger, initialize_logging

    initialize_logging("config/logging.yaml")
    log = get_logger("flight_plan_manager")
    log.info("Origin set to %s", ident)
"""

import logging
import logging.handlers
import os
import platform
import time
from pathlib import Path
from typing import Any

import yaml

DEFAULT_LOG_FILENAME = "navplan.log"

_logging_config: dict[str, Any] = {}
_loggers_cache: dict[str, logging.Logger] = {}
_initialized = False


class LoggingError(Exception):
    """Raised when logging system operations fail."""


def get_platform_log_dir() -> Path:
    """Get platform-specific log directory.

    Returns:
        Path to the platform-appropriate log directory.
    """
    system = platform.system()

    if system == "Darwin":
        return Path.home() / "Library" / "Logs" / "NavPlan"
    elif system == "Windows":
        appdata = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return appdata / "NavPlan" / "Logs"
    else:
        return Path.home() / ".navplan" / "logs"


def rotate_logs(log_dir: Path, log_filename: str = DEFAULT_LOG_FILENAME, keep_count: int = 5) -> None:
    """Rotate logs on startup, keeping the last N launches.

    navplan.log becomes navplan.log.1, older logs shift up by one, and the
    log beyond keep_count is deleted.

    Args:
        log_dir: Directory containing log files.
        log_filename: Base name of the log file.
        keep_count: Number of old logs to keep.
    """
    log_file = log_dir / log_filename
    if not log_file.exists():
        return

    oldest_log = log_dir / f"{log_filename}.{keep_count}"
    if oldest_log.exists():
        oldest_log.unlink()

    for i in range(keep_count - 1, 0, -1):
        old_log = log_dir / f"{log_filename}.{i}"
        if old_log.exists():
            old_log.rename(log_dir / f"{log_filename}.{i + 1}")

    log_file.rename(log_dir / f"{log_filename}.1")


def initialize_logging(config_path: str | Path | None = None, use_platform_dir: bool = True) -> None:
    """Initialize the logging system from YAML configuration.

    Call once at startup before any logging occurs.

    Args:
        config_path: Path to logging configuration YAML file.
            If None, uses the default configuration.
        use_platform_dir: If True, log to the platform directory.
            If False, use log_dir from the config (for development/testing).

    Raises:
        LoggingError: If the configuration cannot be loaded.
    """
    global _logging_config, _initialized

    if config_path:
        config_path = Path(config_path)
        if not config_path.exists():
            raise LoggingError(f"Logging config file not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as f:
                _logging_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise LoggingError(f"Failed to load logging config: {e}") from e
    else:
        _logging_config = _get_default_config()

    if use_platform_dir:
        _logging_config["log_dir"] = str(get_platform_log_dir())

    log_dir = Path(_logging_config.get("log_dir", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    combined = _logging_config.get("combined_log", {})
    rotate_logs(
        log_dir,
        combined.get("filename", DEFAULT_LOG_FILENAME),
        combined.get("backup_count", 5),
    )

    _configure_root_logger()
    _loggers_cache.clear()
    _initialized = True


def _get_default_config() -> dict[str, Any]:
    return {
        "version": 1,
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "date_format": "%Y-%m-%d %H:%M:%S",
        "log_dir": "logs",
        "combined_log": {
            "enabled": True,
            "filename": DEFAULT_LOG_FILENAME,
            "backup_count": 5,
        },
        "console": {
            "enabled": True,
            "level": "INFO",
        },
        "components": {},
    }


def _configure_root_logger() -> None:
    """Configure the root logger with console and combined file handlers."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console = _logging_config.get("console", {})
    if console.get("enabled", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, console.get("level", "INFO")))
        console_handler.setFormatter(_get_formatter())
        root_logger.addHandler(console_handler)

    combined = _logging_config.get("combined_log", {})
    if combined.get("enabled", True):
        log_dir = Path(_logging_config.get("log_dir", "logs"))
        log_file = log_dir / combined.get("filename", DEFAULT_LOG_FILENAME)

        # Rotation happens at startup, so the file is simply overwritten
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_get_formatter())
        root_logger.addHandler(file_handler)


class MillisecondFormatter(logging.Formatter):
    """Formatter that appends milliseconds with a dot separator."""

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        s = time.strftime(datefmt or "%Y-%m-%d %H:%M:%S", ct)
        return f"{s}.{int(record.msecs):03d}"


def _get_formatter() -> logging.Formatter:
    fmt = _logging_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    datefmt = _logging_config.get("date_format", "%Y-%m-%d %H:%M:%S")
    return MillisecondFormatter(fmt, datefmt)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component.

    Loggers are cached. Each component can be configured under the
    'components' section of the logging YAML: a level, a dedicated file, or
    enabled: false to silence it.

    Args:
        name: Component name (e.g., "flight_plan_manager").

    Returns:
        Configured logger instance.

    Examples:
        >>> log = get_logger("flight_plan_manager")
        >>> log.info("Built departure: %d waypoints", count)
    """
    if not _initialized:
        initialize_logging()

    if name in _loggers_cache:
        return _loggers_cache[name]

    logger = logging.getLogger(name)
    component_config = _logging_config.get("components", {}).get(name, {})

    if component_config.get("enabled", True):
        if "level" in component_config:
            logger.setLevel(getattr(logging, component_config["level"]))

        if component_config.get("dedicated_file", False):
            log_dir = Path(_logging_config.get("log_dir", "logs"))
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / f"{name}.log",
                maxBytes=component_config.get("max_bytes", 10485760),
                backupCount=component_config.get("backup_count", 5),
                encoding="utf-8",
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(_get_formatter())
            logger.addHandler(file_handler)
    else:
        logger.disabled = True

    _loggers_cache[name] = logger
    return logger


def shutdown_logging() -> None:
    """Flush and close all handlers."""
    global _initialized

    logging.shutdown()
    _loggers_cache.clear()
    _initialized = False


class LoggerMixin:
    """Mixin giving a class a component logger as self._log.

    Examples:
        >>> class FlightPlanManager(LoggerMixin):
        ...     def __init__(self):
        ...         self.attach_logger("flight_plan_manager")
    """

    def attach_logger(self, name: str) -> None:
        """Attach a component logger to this instance.

        Args:
            name: Logger name to use.
        """
        self._log = get_logger(name)

    def log_debug(self, message: str, *args: Any) -> None:
        if hasattr(self, "_log"):
            self._log.debug(message, *args)

    def log_info(self, message: str, *args: Any) -> None:
        if hasattr(self, "_log"):
            self._log.info(message, *args)

    def log_warning(self, message: str, *args: Any) -> None:
        if hasattr(self, "_log"):
            self._log.warning(message, *args)

    def log_error(self, message: str, *args: Any, exc_info: bool = False) -> None:
        if hasattr(self, "_log"):
            self._log.error(message, *args, exc_info=exc_info)
