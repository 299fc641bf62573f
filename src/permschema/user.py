"""Convenience entrypoints for checking permissions from application code.

Two styles are supported:

- ``PermissionHolder``: a mixin for the application's user class::

      class Account(PermissionHolder):
          granted_permissions = {"projects.edit"}

      account.check_permission("projects.edit", project)
      if account.can("projects.delete", project):
          ...

- module level ``check_permission()`` / ``can()`` for identities that cannot
  carry the mixin.

Both resolve the schema with ``resolve_schema()``: an explicit ``schema=``
argument, then the current schema of the context, then ``Schema.instance``.
"""

from __future__ import annotations

from typing import Any, Optional

from .exceptions import PermissionDeniedError
from .schema import Schema, resolve_schema


def check_permission(
    user: Any,
    path: str,
    obj: Any = None,
    *,
    schema: Optional[Schema] = None,
    strict: bool = True,
) -> list[Any]:
    """Check ``path`` for ``user`` against the resolved schema.

    Raises whatever ``Schema.check_permission()`` raises.
    """
    return resolve_schema(schema).check_permission(path, user, obj, strict=strict)


def can(
    user: Any,
    path: str,
    obj: Any = None,
    *,
    schema: Optional[Schema] = None,
    strict: bool = True,
) -> bool:
    """True if the check passes, False if it is denied.

    Only ``PermissionDeniedError`` means False; lookup and usage errors
    still raise.
    """
    try:
        check_permission(user, path, obj, schema=schema, strict=strict)
    except PermissionDeniedError:
        return False
    return True


class PermissionHolder:
    """Mixin adding ``check_permission()`` and ``can()`` to a user class.

    Set ``permission_schema`` on the class to bind it to one schema.
    """

    permission_schema: Optional[Schema] = None

    def check_permission(self, path: str, obj: Any = None, *, strict: bool = True) -> list[Any]:
        return check_permission(self, path, obj, schema=self.permission_schema, strict=strict)

    def can(self, path: str, obj: Any = None, *, strict: bool = True) -> bool:
        return can(self, path, obj, schema=self.permission_schema, strict=strict)


__all__ = ["PermissionHolder", "can", "check_permission"]
