"""Path helpers shared by permission groups and permissions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..exceptions import SchemaDefinitionError

if TYPE_CHECKING:
    from ..schema import Schema
    from .group import PermissionGroup

WILDCARD = "*"
DEEP_WILDCARD = "**"
PATH_SEPARATOR = "."


def validate_key(key: object) -> str:
    """Return ``key`` as a string usable as a single path segment."""
    key = str(key) if key is not None else ""
    if not key:
        raise SchemaDefinitionError("Keys must not be empty")
    if PATH_SEPARATOR in key or WILDCARD in key:
        raise SchemaDefinitionError(
            f"Key '{key}' must not contain '{PATH_SEPARATOR}' or '{WILDCARD}'",
            key=key,
        )
    return key


class TreeNode:
    """Mixin giving a node its position in the permission tree.

    Subclasses set ``key``, ``group`` (parent) and ``schema``.
    """

    key: Optional[str]
    group: Optional[PermissionGroup]
    schema: Schema

    @property
    def path(self) -> Optional[str]:
        """Dotted path from the root; None for the root group."""
        if self.key is None:
            return None
        parent_path = self.group.path if self.group is not None else None
        if parent_path is None:
            return self.key
        return f"{parent_path}{PATH_SEPARATOR}{self.key}"

    @property
    def path_with_namespace(self) -> Optional[str]:
        path = self.path
        if path is None:
            return None
        return self.schema.config.qualify(path)

    @property
    def parents(self) -> list[PermissionGroup]:
        """Ancestor groups, root first."""
        chain: list[PermissionGroup] = []
        node = self.group
        while node is not None:
            chain.append(node)
            node = node.group
        chain.reverse()
        return chain

    @property
    def root(self) -> PermissionGroup:
        parents = self.parents
        return parents[0] if parents else self  # type: ignore[return-value]
