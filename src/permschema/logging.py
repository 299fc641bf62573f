"""Centralized logging utilities for permschema.

This module provides:
- Logging configuration from LoggingConfig
- Safe preview utilities for identities and objects in log lines
- Structured logging with permission/user context
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import LoggingConfig, LogLevel

LOGGER_NAME = "permschema"

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "permission", "user",
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a safe, length-bounded preview of a value for logging.

    Converts any value to a single-line string, normalizes whitespace and
    truncates to ``limit`` characters.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated single-line string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, set, tuple)):
        if isinstance(value, set):
            value = sorted(value, key=str)
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"

    return s


class PermschemaFormatter(logging.Formatter):
    """Formatter that includes the checked permission and acting user.

    Outputs either one JSON object per record or a plain text line.
    """

    def __init__(self, json_format: bool = True, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        permission = getattr(record, "permission", None)
        user = getattr(record, "user", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if permission:
            log_data["permission"] = permission
        if user:
            log_data["user"] = safe_preview(user)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            f"{log_data['level']}",
            f"{log_data['logger']}",
        ]
        if permission:
            parts.append(f"permission={permission}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class CheckLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the permission path and user to log records.

    Usage:
        logger = get_check_logger(__name__, permission="projects.edit")
        logger.info("granted", user=proxy.description)
    """

    def __init__(
        self,
        logger: logging.Logger,
        permission: Optional[str] = None,
        user: Optional[str] = None,
    ):
        super().__init__(logger, {})
        self.permission = permission
        self.user = user

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        permission = kwargs.pop("permission", self.permission)
        user = kwargs.pop("user", self.user)

        extra = dict(kwargs.get("extra") or {})
        if permission:
            extra["permission"] = permission
        if user:
            extra["user"] = user
        kwargs["extra"] = extra

        return msg, kwargs


def setup_logging(
    config: Optional[LoggingConfig] = None,
    json_format: Optional[bool] = None,
) -> None:
    """Configure the ``permschema`` logger.

    Sets the level from LoggingConfig and installs a single stream handler
    using PermschemaFormatter. Only the package logger is touched; the root
    logger is left to the host application.

    Args:
        config: LoggingConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
    """
    if config is None:
        from .config import load_logging_config_from_env

        config = load_logging_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(log_level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(
        PermschemaFormatter(json_format=config.log_json if json_format is None else json_format)
    )
    package_logger.addHandler(handler)


def get_check_logger(
    name: str | logging.Logger,
    permission: Optional[str] = None,
    user: Optional[str] = None,
) -> CheckLoggerAdapter:
    """Get a logger adapter bound to a permission and user.

    Args:
        name: Logger name, or an existing Logger (e.g. ``SchemaConfig.logger``)
        permission: Permission path to include in all records
        user: User description to include in all records
    """
    logger = name if isinstance(name, logging.Logger) else logging.getLogger(name)
    return CheckLoggerAdapter(logger, permission=permission, user=user)


__all__ = [
    "CheckLoggerAdapter",
    "LOGGER_NAME",
    "PermschemaFormatter",
    "get_check_logger",
    "safe_preview",
    "setup_logging",
]
