"""Unified exception hierarchy for permschema.

All errors raised by the engine inherit from PermschemaError. This module provides:
- Base exception hierarchy with stable error codes
- DenialCode discriminant carried by PermissionDeniedError
- ErrorRegistry mapping error codes back to their classes

Usage:
    from permschema.exceptions import DenialCode, PermissionDeniedError

    try:
        schema.check_permission("projects.delete", user, project)
    except PermissionDeniedError as e:
        if e.denial is DenialCode.NOT_IN_CONTEXT:
            ...
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, TypeVar, cast

if TYPE_CHECKING:
    from .permissions.permission import Permission
    from .permissions.rules import RuleExecution

__all__ = [
    # Base hierarchy
    "PermschemaError",
    "SchemaDefinitionError",
    "PermissionNotFoundError",
    "NamespaceMissingError",
    "NamespaceMismatchError",
    "NoPermissionsFoundError",
    "InvalidObjectError",
    "PermissionDeniedError",
    "DenialCode",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]


# ---- Exception Hierarchy ----------------------------------------------------


class PermschemaError(Exception):
    """Base exception for all permschema errors.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "PERMISSION_DENIED").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class SchemaDefinitionError(PermschemaError):
    """Invalid schema construction (duplicate keys, undefined rules, bad reload)."""

    code: str = "SCHEMA_DEFINITION_ERROR"
    message: str = "Invalid permission schema definition"


class PermissionNotFoundError(PermschemaError):
    """A permission path could not be resolved against the schema."""

    code: str = "PERMISSION_NOT_FOUND"
    message: str = "No permission found"


class NamespaceMissingError(PermissionNotFoundError):
    """The schema requires a namespace and the path has none."""

    code: str = "NAMESPACE_MISSING"


class NamespaceMismatchError(PermissionNotFoundError):
    """The path's namespace is not the schema's namespace."""

    code: str = "NAMESPACE_MISMATCH"


class NoPermissionsFoundError(PermschemaError):
    """A wildcard path resolved to zero permissions."""

    code: str = "NO_PERMISSIONS_FOUND"
    message: str = "No permissions found"


class InvalidObjectError(PermschemaError):
    """The object's type is not accepted by a permission or rule.

    This is a usage error, never an authorization outcome.
    """

    code: str = "INVALID_OBJECT"
    message: str = "Invalid object provided to permission check"


class DenialCode(str, Enum):
    """Why a permission check was denied."""

    NOT_IN_CONTEXT = "NotInContext"
    PERMISSION_NOT_GRANTED = "PermissionNotGranted"
    RULE_NOT_SATISFIED = "RuleNotSatisfied"
    INCLUDED_RULE_NOT_SATISFIED = "IncludedRuleNotSatisfied"


class PermissionDeniedError(PermschemaError):
    """The user may not perform the permission.

    Attributes:
        denial: The DenialCode discriminant.
        permission: The Permission that failed (None for unstrict checks).
        user: The underlying identity the check ran for.
        object: The object the check ran against.
        rule: The failing RuleExecution for rule denials, else None.
    """

    code: str = "PERMISSION_DENIED"
    message: str = "Permission denied"

    def __init__(
        self,
        denial: DenialCode | str,
        message: str | None = None,
        permission: Permission | None = None,
        *,
        user: Any = None,
        obj: Any = None,
        rule: RuleExecution | None = None,
    ) -> None:
        self.denial = DenialCode(denial)
        self.permission = permission
        self.user = user
        self.object = obj
        self.rule = rule
        super().__init__(
            message,
            denial=self.denial.value,
            permission=permission.path if permission is not None else None,
        )


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[PermschemaError])


class ErrorRegistry:
    """Registry mapping stable error codes to their exception classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[PermschemaError]] = {}

    def register(self, code: str, error_cls: type[PermschemaError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[PermschemaError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[PermschemaError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("TENANT_SUSPENDED")
        class TenantSuspendedError(PermschemaError):
            code = "TENANT_SUSPENDED"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    PermschemaError,
    SchemaDefinitionError,
    PermissionNotFoundError,
    NamespaceMissingError,
    NamespaceMismatchError,
    NoPermissionsFoundError,
    InvalidObjectError,
    PermissionDeniedError,
):
    error_registry.register(_cls.code, _cls)
