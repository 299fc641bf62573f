"""Permission groups: the internal nodes of a permission schema.

Provides:
- ``PermissionGroup``: owns sub-groups, permissions and globally defined rules.
- ``PermissionGroup.find_permissions_from_path()``: resolves dotted paths,
  including the ``*`` and ``**.*`` wildcards, to Permission nodes.

Path grammar::

    [namespace <delimiter>] segment ("." segment)*

``group.*`` matches the group's own permissions; ``group.**.*`` matches every
permission below the group, own permissions first and then each sub-group
in declaration order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from ..exceptions import PermissionNotFoundError, SchemaDefinitionError
from .nodes import DEEP_WILDCARD, PATH_SEPARATOR, WILDCARD, TreeNode, validate_key
from .permission import Permission
from .rules import Rule

if TYPE_CHECKING:
    from ..schema import Schema


class PermissionGroup(TreeNode):
    """A node of the permission tree.

    The root group has no key and no parent. Within one group a key names
    either one sub-group or one permission, never both.

    Attributes:
        name: Optional display name, used by the schema export.
        description: Optional description, used by the schema export.
    """

    def __init__(self, schema: Schema, group: Optional[PermissionGroup], key: Optional[str] = None) -> None:
        if group is not None and key is None:
            raise SchemaDefinitionError("Cannot create a new non-root permission group without a key")
        if group is None and key is not None:
            raise SchemaDefinitionError("Cannot create a new root permission group with a key")

        self.schema = schema
        self.group = group
        self.key = validate_key(key) if key is not None else None
        self.name: Optional[str] = None
        self.description: Optional[str] = None
        self.groups: dict[str, PermissionGroup] = {}
        self.permissions: dict[str, Permission] = {}
        self.defined_rules: dict[str, Rule] = {}

    def __getitem__(self, key: str) -> Union[PermissionGroup, Permission, None]:
        return self.group_or_permission(key)

    def __repr__(self) -> str:
        return f"<PermissionGroup {self.path or '(root)'}>"

    def group_or_permission(self, key: str) -> Union[PermissionGroup, Permission, None]:
        key = str(key)
        group = self.groups.get(key)
        if group is not None:
            return group
        return self.permissions.get(key)

    # ── Construction ────────────────────────────────────

    def add_group(self, key: str) -> PermissionGroup:
        key = validate_key(key)
        if self.group_or_permission(key) is not None:
            raise SchemaDefinitionError(f"Group or permission with key of {key} already exists", key=key)
        group = PermissionGroup(self.schema, self, key)
        self.groups[key] = group
        return group

    def add_permission(self, key: str) -> Permission:
        key = validate_key(key)
        if self.group_or_permission(key) is not None:
            raise SchemaDefinitionError(f"Group or permission with key of {key} already exists", key=key)
        permission = Permission(self, key)
        self.permissions[key] = permission
        return permission

    def define_rule(self, key: str, predicate: Callable[..., Any], *required_object_types: Any) -> Rule:
        """Define a rule that any permission below this group may include.

        Raises:
            SchemaDefinitionError: the key is already defined here or on an ancestor.
        """
        key = validate_key(key)
        if key in self.all_defined_rules():
            raise SchemaDefinitionError(f"Rule {key} has already been defined", key=key)
        rule = Rule(key, predicate, *required_object_types)
        self.defined_rules[key] = rule
        return rule

    # ── Lookup ──────────────────────────────────────────

    def all_defined_rules(self) -> dict[str, Rule]:
        """Rules defined on this group and every ancestor.

        An ancestor's rule wins over a same-named rule defined lower down.
        """
        rules = dict(self.defined_rules)
        if self.group is not None:
            rules.update(self.group.all_defined_rules())
        return rules

    def all_permissions(self) -> list[Permission]:
        """Own permissions, then each sub-group's permissions recursively."""
        permissions = list(self.permissions.values())
        for group in self.groups.values():
            permissions.extend(group.all_permissions())
        return permissions

    def find_permissions_from_path(self, path: str) -> list[Permission]:
        """Resolve ``path`` relative to this group.

        Returns:
            The single matching permission, or every permission matched by a
            trailing wildcard (possibly none).

        Raises:
            PermissionNotFoundError: the path is empty, names nothing, passes
                through a permission, ends on a group, misplaces a wildcard or
                breaks the namespace policy.
        """
        if not isinstance(path, str) or not path:
            raise PermissionNotFoundError("Must provide a permission path", path=path)

        bare_path = self.schema.config.parse_namespace(path)
        parts = bare_path.split(PATH_SEPARATOR)
        node: Union[PermissionGroup, Permission] = self

        for index, part in enumerate(parts):
            remaining = parts[index + 1 :]

            if part == WILDCARD:
                if remaining:
                    raise PermissionNotFoundError(
                        "Wildcards must be placed at the end of a permission path", path=path
                    )
                return list(node.permissions.values())  # type: ignore[union-attr]

            if part == DEEP_WILDCARD:
                if remaining != [WILDCARD]:
                    raise PermissionNotFoundError(
                        f"'{DEEP_WILDCARD}' must be followed by a final '{WILDCARD}'", path=path
                    )
                return node.all_permissions()  # type: ignore[union-attr]

            child = node.group_or_permission(part)  # type: ignore[union-attr]
            if child is None:
                raise PermissionNotFoundError(f"No permission found matching '{path}'", path=path)
            if isinstance(child, Permission) and remaining:
                raise PermissionNotFoundError(
                    "Permission found too early in the path. Permission key should always be at the end of the path.",
                    path=path,
                )
            node = child

        if isinstance(node, Permission):
            return [node]
        raise PermissionNotFoundError(
            f"Last part of path '{path}' was not a permission", path=path
        )


__all__ = ["PermissionGroup"]
