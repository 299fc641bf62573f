"""Configuration models for permschema.

This module provides Pydantic-validated configuration models:
- ``SchemaConfig``: per-schema settings (namespace policy, identity adapter, logger).
- ``LoggingConfig``: process logging settings consumed by ``setup_logging()``.

The namespace policy lives on SchemaConfig because both path resolution and
the grant gate of a permission check consult it.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import NamespaceMismatchError, NamespaceMissingError
from .user_proxy import UserProxy

_TRUTHY = ("true", "1", "yes", "on")


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _default_logger() -> logging.Logger:
    return logging.getLogger("permschema")


class SchemaConfig(BaseModel):
    """Settings for one permission schema.

    Namespace matrix (``namespace="app"``, ``namespace_delimiter=":"``):

    ====================  ===================  ===================
    path                  required             optional
    ====================  ===================  ===================
    ``users.edit``        NamespaceMissing     ``users.edit``
    ``wrong:users.edit``  NamespaceMismatch    NamespaceMismatch
    ``app:users.edit``    ``users.edit``       ``users.edit``
    ====================  ===================  ===================

    Without a namespace the delimiter has no special meaning.
    """

    model_config = {
        "arbitrary_types_allowed": True,
        "validate_assignment": True,
        "extra": "forbid",
    }

    namespace: Optional[str] = Field(
        default=None,
        description="Namespace token scoping every path of the schema (e.g. 'myapp')",
    )
    namespace_delimiter: str = Field(
        default=":",
        description="Separator between the namespace and the dotted path",
    )
    namespace_optional: bool = Field(
        default=False,
        description="Accept paths without a namespace prefix when a namespace is set",
    )
    user_proxy_class: type = Field(
        default=UserProxy,
        description="Identity adapter used to wrap raw identities passed to checks",
    )
    logger: logging.Logger = Field(
        default_factory=_default_logger,
        description="Logger receiving grant/deny decisions",
    )

    @field_validator("namespace", mode="before")
    @classmethod
    def validate_namespace(cls, v: Any) -> Optional[str]:
        """Normalise an empty namespace to None."""
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("namespace_delimiter")
    @classmethod
    def validate_namespace_delimiter(cls, v: str) -> str:
        if not v:
            raise ValueError("Namespace delimiter must not be empty")
        if "." in v or "*" in v:
            raise ValueError("Namespace delimiter must not contain '.' or '*'")
        return v

    @field_validator("user_proxy_class")
    @classmethod
    def validate_user_proxy_class(cls, v: type) -> type:
        if not (isinstance(v, type) and issubclass(v, UserProxy)):
            raise ValueError("user_proxy_class must be a UserProxy subclass")
        return v

    # ── Namespace policy ────────────────────────────────

    def parse_namespace(self, path: str) -> str:
        """Strip the namespace prefix from ``path`` according to the policy.

        The candidate namespace is everything before the *last* delimiter.

        Raises:
            NamespaceMissingError: namespace required but the path has none.
            NamespaceMismatchError: the path carries a different namespace.
        """
        if self.namespace is None:
            return path

        candidate, delimiter, remaining = path.rpartition(self.namespace_delimiter)
        if not delimiter:
            if self.namespace_optional:
                return path
            raise NamespaceMissingError(
                f"Namespace: '{self.namespace}' is missing in path: '{path}'",
                path=path,
            )

        if candidate != self.namespace:
            raise NamespaceMismatchError(
                f"Namespace: '{candidate}' does not match the schema namespace: '{self.namespace}'",
                path=path,
            )
        return remaining

    def qualify(self, path: str) -> str:
        """Return ``path`` prefixed with the namespace, if one is configured."""
        if self.namespace is None:
            return path
        return f"{self.namespace}{self.namespace_delimiter}{path}"

    def granted_path_candidates(self, path: str) -> tuple[str, ...]:
        """Grant strings that satisfy a permission whose bare path is ``path``.

        required → namespaced only; optional → bare or namespaced; none → bare.
        """
        if self.namespace is None:
            return (path,)
        if self.namespace_optional:
            return (path, self.qualify(path))
        return (self.qualify(path),)


class LoggingConfig(BaseModel):
    """Logging settings for processes embedding permschema."""

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the permschema logger",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "extra": "forbid",
    }


def load_schema_config_from_env() -> SchemaConfig:
    """Load schema configuration from environment variables.

    Environment variables:
    - PERMSCHEMA_NAMESPACE: Namespace token (unset or empty = no namespace)
    - PERMSCHEMA_NAMESPACE_DELIMITER: Namespace delimiter (default: ":")
    - PERMSCHEMA_NAMESPACE_OPTIONAL: Accept bare paths (true/false, default: false)

    Returns:
        SchemaConfig instance with values from environment or defaults.
    """
    import os

    return SchemaConfig(
        namespace=os.getenv("PERMSCHEMA_NAMESPACE"),
        namespace_delimiter=os.getenv("PERMSCHEMA_NAMESPACE_DELIMITER", ":"),
        namespace_optional=os.getenv("PERMSCHEMA_NAMESPACE_OPTIONAL", "false").lower() in _TRUTHY,
    )


def load_logging_config_from_env() -> LoggingConfig:
    """Load logging configuration from environment variables.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    """
    import os

    return LoggingConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
    )


__all__ = [
    "LogLevel",
    "LoggingConfig",
    "SchemaConfig",
    "load_logging_config_from_env",
    "load_schema_config_from_env",
]
