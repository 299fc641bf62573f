"""Permission schema: the tree, its configuration and the check entrypoint.

A ``Schema`` owns the root ``PermissionGroup`` and a ``SchemaConfig``. The
tree is built once, then read by any number of concurrent checks::

    schema = Schema()

    def define(root):
        projects = root.add_group("projects")
        projects.define_rule("owner", lambda user, project: project.owner == user)
        edit = projects.add_permission("edit")
        edit.include_rule("owner")

    schema.load(define)
    schema.check_permission("projects.edit", user, project)

``load()`` and ``reload()`` build a complete new tree before publishing it
with a single reference swap, so readers never see a half-built tree.
Readers are not locked; callers that reload under traffic must accept that a
check in flight may resolve dependency paths against the new tree.
"""

from __future__ import annotations

import threading
from contextvars import ContextVar
from typing import Any, Callable, ClassVar, Literal, Optional

from pydantic import BaseModel, Field

from .config import SchemaConfig
from .exceptions import (
    DenialCode,
    NoPermissionsFoundError,
    PermissionDeniedError,
    PermissionNotFoundError,
    SchemaDefinitionError,
)
from .logging import get_check_logger
from .permissions import Permission, PermissionGroup
from .permissions.nodes import WILDCARD
from .user_proxy import wrap_user

SchemaDefinition = Callable[[PermissionGroup], Any]


class SchemaEntry(BaseModel):
    """One row of the schema export."""

    kind: Literal["group", "permission"]
    name: Optional[str] = None
    description: Optional[str] = None
    parent_path: Optional[str] = Field(
        default=None,
        description="Dotted path of the parent group (None for children of the root)",
    )


class Schema:
    """A permission tree plus its configuration.

    Attributes:
        instance: Optional process-wide schema, see ``resolve_schema()``.
    """

    instance: ClassVar[Optional[Schema]] = None

    def __init__(self, config: Optional[SchemaConfig] = None) -> None:
        self.config = config or SchemaConfig()
        self._root_group = PermissionGroup(self, None)
        self._definition: Optional[SchemaDefinition] = None
        self._reload_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<Schema namespace={self.config.namespace!r}>"

    @property
    def root_group(self) -> PermissionGroup:
        return self._root_group

    @property
    def logger(self):
        return self.config.logger

    def configure(self, **changes: Any) -> SchemaConfig:
        """Update configuration fields, validating each assignment.

        Example::

            schema.configure(namespace="myapp", namespace_optional=True)
        """
        for name, value in changes.items():
            if name not in SchemaConfig.model_fields:
                raise SchemaDefinitionError(f"Unknown schema configuration option '{name}'", option=name)
            setattr(self.config, name, value)
        return self.config

    # ── Loading ─────────────────────────────────────────

    def load(self, definition: SchemaDefinition) -> PermissionGroup:
        """Build a fresh tree with ``definition`` and publish it.

        ``definition`` receives the new root group and populates it. If it
        raises, the current tree stays in place.
        """
        with self._reload_lock:
            root = PermissionGroup(self, None)
            definition(root)
            self._root_group = root
            self._definition = definition
        self.logger.info("Loaded permission schema (%d permissions)", len(root.all_permissions()))
        return root

    def reload(self) -> PermissionGroup:
        """Rebuild the tree from the definition given to the last ``load()``.

        Raises:
            SchemaDefinitionError: nothing has been loaded yet.
        """
        if self._definition is None:
            raise SchemaDefinitionError("Cannot reload a schema that wasn't loaded from a definition")
        return self.load(self._definition)

    # ── Export ──────────────────────────────────────────

    def export(self) -> dict[str, SchemaEntry]:
        """Flat description of the tree keyed by namespaced path, sorted by key.

        Documentation and tooling only; checks never consult it.
        """
        entries: dict[str, SchemaEntry] = {}
        self._export_group(self._root_group, entries)
        return dict(sorted(entries.items()))

    def _export_group(self, group: PermissionGroup, entries: dict[str, SchemaEntry]) -> None:
        if group.path is not None:
            entries[str(group.path_with_namespace)] = SchemaEntry(
                kind="group",
                name=group.name,
                description=group.description,
                parent_path=group.group.path if group.group is not None else None,
            )
        for permission in group.permissions.values():
            entries[str(permission.path_with_namespace)] = SchemaEntry(
                kind="permission",
                description=permission.description,
                parent_path=group.path,
            )
        for subgroup in group.groups.values():
            self._export_group(subgroup, entries)

    # ── Checking ────────────────────────────────────────

    def find_permissions_from_path(self, path: str) -> list[Permission]:
        return self._root_group.find_permissions_from_path(path)

    def check_permission(
        self,
        path: str,
        user: Any,
        obj: Any = None,
        *,
        strict: bool = True,
    ) -> list[Any]:
        """Check whether ``user`` may perform ``path`` on ``obj``.

        Args:
            path: Permission path, optionally namespaced, optionally ending
                in ``*`` or ``**.*``.
            user: A raw identity or a UserProxy.
            obj: Object the permission is checked against.
            strict: When False the path need not exist in the schema; it is
                only looked up in the caller's granted permissions.

        Returns:
            The granted permissions (strict) or ``[path]`` (unstrict).

        Raises:
            PermissionDeniedError: the check was denied.
            PermissionNotFoundError: the path does not resolve.
            NoPermissionsFoundError: a wildcard matched nothing.
            InvalidObjectError: ``obj`` has a type a permission or rule rejects.
        """
        if strict:
            return self._check_strict(path, user, obj)
        return self._check_unstrict(path, user)

    def _check_strict(self, path: str, user: Any, obj: Any) -> list[Permission]:
        permissions = self.find_permissions_from_path(path)

        if not permissions:
            raise NoPermissionsFoundError(f"No permissions found matching {path}", path=path)

        if len(permissions) == 1:
            return permissions[0].check(user, obj)

        proxy = wrap_user(user, self.config.user_proxy_class)
        granted: list[Permission] = []
        ungranted = 0
        for permission in permissions:
            result = permission.evaluate(proxy, obj)
            if result.granted:
                granted.extend(result.permissions)
            elif result.code is DenialCode.PERMISSION_NOT_GRANTED:
                ungranted += 1
            else:
                raise result.denial  # type: ignore[misc]

        if ungranted == len(permissions):
            raise PermissionDeniedError(
                DenialCode.PERMISSION_NOT_GRANTED,
                f"User does not have any permissions {', '.join(str(p.path) for p in permissions)}.",
                permissions[0],
                user=proxy.user,
                obj=obj,
            )
        return granted

    def _check_unstrict(self, path: str, user: Any) -> list[str]:
        if not isinstance(path, str) or not path:
            raise PermissionNotFoundError("Must provide a permission path", path=path)
        if WILDCARD in path:
            raise PermissionNotFoundError(
                "Permission path cannot contain wildcards when strict is false", path=path
            )

        proxy = wrap_user(user, self.config.user_proxy_class)
        if path in proxy.granted_permissions:
            return [path]

        get_check_logger(self.logger, permission=path).info(
            "`%s` not granted to %s", path, proxy.description
        )
        raise PermissionDeniedError(
            DenialCode.PERMISSION_NOT_GRANTED,
            f"User has not been granted the '{path}' permission",
            user=proxy.user,
        )


# ── Process-wide schema lookup ──────────────────────────

_current_schema: ContextVar[Optional[Schema]] = ContextVar("permschema_current_schema", default=None)


def set_current_schema(schema: Optional[Schema]) -> Any:
    """Make ``schema`` the current schema for this context.

    Returns a token for ``reset_current_schema()``.
    """
    return _current_schema.set(schema)


def reset_current_schema(token: Any) -> None:
    _current_schema.reset(token)


def get_current_schema() -> Optional[Schema]:
    return _current_schema.get()


def resolve_schema(schema: Optional[Schema] = None) -> Schema:
    """Pick the explicit schema, else the current schema, else ``Schema.instance``."""
    resolved = schema or get_current_schema() or Schema.instance
    if resolved is None:
        raise SchemaDefinitionError(
            "Could not determine a schema. Set a current schema, Schema.instance, or pass schema=."
        )
    return resolved


__all__ = [
    "Schema",
    "SchemaDefinition",
    "SchemaEntry",
    "get_current_schema",
    "reset_current_schema",
    "resolve_schema",
    "set_current_schema",
]
