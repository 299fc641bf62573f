"""Tests for permschema.exceptions (hierarchy and registry)."""

from __future__ import annotations

import pytest

from permschema import (
    DenialCode,
    InvalidObjectError,
    NamespaceMismatchError,
    NamespaceMissingError,
    NoPermissionsFoundError,
    PermissionDeniedError,
    PermissionNotFoundError,
    PermschemaError,
    SchemaDefinitionError,
)
from permschema.exceptions import error_registry, register_error


class TestHierarchy:
    """Tests for error codes and attributes."""

    def test_base_error(self) -> None:
        """Test message, code and details on the base error."""
        error = PermschemaError("boom", path="a.b")
        assert str(error) == "boom"
        assert error.code == "INTERNAL_ERROR"
        assert error.details == {"path": "a.b"}

    def test_default_message(self) -> None:
        """Test subclasses fall back to their default message."""
        assert NoPermissionsFoundError().message == "No permissions found"

    def test_namespace_errors_are_not_found_errors(self) -> None:
        """Test namespace failures can be caught as PermissionNotFoundError."""
        assert issubclass(NamespaceMissingError, PermissionNotFoundError)
        assert issubclass(NamespaceMismatchError, PermissionNotFoundError)
        assert NamespaceMissingError().code == "NAMESPACE_MISSING"

    def test_permission_denied_error(self) -> None:
        """Test denial attributes and details."""
        user, obj = object(), object()
        error = PermissionDeniedError("RuleNotSatisfied", "nope", user=user, obj=obj)

        assert error.denial is DenialCode.RULE_NOT_SATISFIED
        assert error.user is user
        assert error.object is obj
        assert error.permission is None
        assert error.rule is None
        assert error.details == {"denial": "RuleNotSatisfied", "permission": None}

    def test_unknown_denial_code(self) -> None:
        """Test only known denial codes are accepted."""
        with pytest.raises(ValueError):
            PermissionDeniedError("Whatever")


class TestErrorRegistry:
    """Tests for the error registry."""

    def test_builtin_errors_registered(self) -> None:
        """Test every built-in error is registered under its code."""
        assert error_registry.get("PERMISSION_DENIED") is PermissionDeniedError
        assert error_registry.get("INVALID_OBJECT") is InvalidObjectError
        assert error_registry.get("SCHEMA_DEFINITION_ERROR") is SchemaDefinitionError

    def test_register_custom_error(self) -> None:
        """Test the decorator registers custom errors."""

        @register_error("TENANT_SUSPENDED")
        class TenantSuspendedError(PermschemaError):
            code = "TENANT_SUSPENDED"

        assert error_registry.get("TENANT_SUSPENDED") is TenantSuspendedError
        assert "TENANT_SUSPENDED" in error_registry.all()
