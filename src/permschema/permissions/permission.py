"""Permissions: the checkable leaves of a permission schema.

``Permission.check()`` runs the gates in a fixed order and stops at the
first failure:

1. context: the caller must act in one of the permission's contexts
2. grant: the caller must hold the permission (namespace aware)
3. dependencies: every dependency path must itself pass ``check()``
4. included rules
5. own rules: after validating the object against required types

``Permission.evaluate()`` runs the same gates but returns a ``CheckResult``
instead of raising denials, which lets callers branch on the denial code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from ..exceptions import (
    DenialCode,
    InvalidObjectError,
    PermissionDeniedError,
    SchemaDefinitionError,
)
from ..logging import get_check_logger
from ..user_proxy import UserProxy, wrap_user
from .nodes import WILDCARD, TreeNode, validate_key
from .rules import IncludedRule, Rule, RuleExecution, accepts_object, type_name

if TYPE_CHECKING:
    from .group import PermissionGroup


@dataclass
class CheckResult:
    """Outcome of ``Permission.evaluate()``.

    Exactly one of ``permissions`` (granted) or ``denial`` is meaningful.
    """

    permissions: list[Permission] = field(default_factory=list)
    denial: Optional[PermissionDeniedError] = None

    @property
    def granted(self) -> bool:
        return self.denial is None

    @property
    def code(self) -> Optional[DenialCode]:
        return self.denial.denial if self.denial is not None else None

    def unwrap(self) -> list[Permission]:
        """Return the granted permissions or raise the denial."""
        if self.denial is not None:
            raise self.denial
        return self.permissions


class Permission(TreeNode):
    """One checkable capability, addressed by its dotted path.

    Attributes:
        dependencies: Paths of permissions that must also pass.
        required_object_types: Class names the checked object must have
            (empty = any object).
        contexts: Contexts the permission may be granted in (empty = any).
        rules: Local rules, in declaration order.
        included_rules: Inclusions of globally defined rules, in declaration order.
    """

    def __init__(self, group: PermissionGroup, key: str) -> None:
        if group is None:
            raise SchemaDefinitionError("Group must be provided when creating a permission")

        self.group = group
        self.schema = group.schema
        self.key = validate_key(key)
        self._description: Optional[str] = None
        self.dependencies: list[str] = []
        self.required_object_types: list[str] = []
        self.contexts: list[str] = []
        self.rules: dict[str, Rule] = {}
        self.included_rules: dict[str, IncludedRule] = {}

    def __repr__(self) -> str:
        return f"<Permission {self.path}>"

    @property
    def description(self) -> str:
        return self._description or str(self.path)

    @description.setter
    def description(self, value: Optional[str]) -> None:
        self._description = value

    # ── Construction ────────────────────────────────────

    def add_rule(self, key: str, predicate: Union[Callable[..., Any], Rule]) -> Rule:
        key = validate_key(key)
        if key in self.rules:
            raise SchemaDefinitionError(f"Rule with key '{key}' already exists on this permission", key=key)
        rule = predicate if isinstance(predicate, Rule) else Rule(key, predicate)
        self.rules[key] = rule
        return rule

    def include_rule(
        self,
        key_or_included_rule: Union[str, IncludedRule],
        *,
        condition: Optional[Callable[..., Any]] = None,
        translate: Optional[Callable[..., Any]] = None,
    ) -> IncludedRule:
        """Include a rule defined on this permission's group or an ancestor.

        The rule itself is looked up when the permission is checked.
        """
        if isinstance(key_or_included_rule, IncludedRule):
            included_rule = key_or_included_rule
        else:
            included_rule = IncludedRule(key_or_included_rule, condition=condition, translate=translate)

        if included_rule.key in self.included_rules:
            raise SchemaDefinitionError(
                f"Rule with key '{included_rule.key}' already been included on this permission",
                key=included_rule.key,
            )
        self.included_rules[included_rule.key] = included_rule
        return included_rule

    def add_context(self, context: str) -> str | bool:
        context = context if isinstance(context, str) else str(context)
        if context in self.contexts:
            return False
        self.contexts.append(context)
        return context

    def remove_all_contexts(self) -> int:
        previous_size = len(self.contexts)
        self.contexts = []
        return previous_size

    def add_dependency(self, path: str) -> str | bool:
        path = str(path)
        if WILDCARD in path:
            raise SchemaDefinitionError(
                f"Dependency '{path}' of {self.path} must name a single permission, not a wildcard",
                path=path,
            )
        if path in self.dependencies:
            return False
        self.dependencies.append(path)
        return path

    def add_required_object_type(self, type_or_name: Any) -> str | bool:
        name = type_name(type_or_name)
        if name in self.required_object_types:
            return False
        self.required_object_types.append(name)
        return name

    # ── Checking ────────────────────────────────────────

    def check(self, user: Any, obj: Any = None) -> list[Permission]:
        """Check the permission for ``user`` and ``obj``.

        Returns:
            This permission followed by the results of its dependency checks.

        Raises:
            PermissionDeniedError: a gate denied the check.
            InvalidObjectError: ``obj`` is not of a required type.
            SchemaDefinitionError: an included rule is not defined.
        """
        return self.evaluate(user, obj).unwrap()

    def evaluate(self, user: Any, obj: Any = None) -> CheckResult:
        """Run the gates and report a denial as a value rather than raising it.

        Configuration errors (``InvalidObjectError``, ``SchemaDefinitionError``,
        ``PermissionNotFoundError`` for a broken dependency path) still raise.
        """
        proxy = wrap_user(user, self.schema.config.user_proxy_class)
        log = get_check_logger(self.schema.config.logger, permission=self.path, user=proxy.description)

        caller_contexts = proxy.contexts
        if self.contexts and not any(context in caller_contexts for context in self.contexts):
            log.info("`%s` not granted to %s because not in context.", self.path, proxy.description)
            return CheckResult(
                denial=self._deny(
                    DenialCode.NOT_IN_CONTEXT,
                    f"Permission '{self.path}' cannot be granted in the "
                    f"{', '.join(sorted(caller_contexts)) or 'empty'} context(s). "
                    f"Only allowed for {', '.join(self.contexts)}.",
                    proxy,
                    obj,
                )
            )

        if not self.is_granted_to(proxy):
            log.info("`%s` not granted to %s", self.path, proxy.description)
            return CheckResult(
                denial=self._deny(
                    DenialCode.PERMISSION_NOT_GRANTED,
                    f"User has not been granted the '{self.path}' permission",
                    proxy,
                    obj,
                )
            )

        granted: list[Permission] = [self]
        for dependency in self.dependencies_as_permissions():
            log.info("`%s` has a dependency of `%s`...", self.path, dependency.path)
            result = dependency.evaluate(proxy, obj)
            if not result.granted:
                return result
            granted.extend(result.permissions)

        unsatisfied = self.first_unsatisfied_included_rule(proxy, obj)
        if unsatisfied is not None:
            log.info(
                "`%s` not granted to %s because rule `%s` on `%s` was not satisfied.",
                self.path,
                proxy.description,
                unsatisfied.rule.key,
                self.path,
            )
            return CheckResult(
                denial=self._deny(
                    DenialCode.INCLUDED_RULE_NOT_SATISFIED,
                    f"Rule {unsatisfied.rule.key} (on {self.path}) was not satisfied.",
                    proxy,
                    obj,
                    unsatisfied,
                )
            )

        if not accepts_object(self.required_object_types, obj):
            raise InvalidObjectError(
                f"The {type(obj).__name__} object provided to permission check for {self.path} was not valid. "
                f"Valid object types are: {', '.join(self.required_object_types)}",
                permission=self.path,
                object_type=type(obj).__name__,
            )

        unsatisfied = self.first_unsatisfied_rule(proxy, obj)
        if unsatisfied is not None:
            log.info(
                "`%s` not granted to %s because rule `%s` on `%s` was not satisfied.",
                self.path,
                proxy.description,
                unsatisfied.rule.key,
                self.path,
            )
            return CheckResult(
                denial=self._deny(
                    DenialCode.RULE_NOT_SATISFIED,
                    f"Rule {unsatisfied.rule.key} (on {self.path}) was not satisfied.",
                    proxy,
                    obj,
                    unsatisfied,
                )
            )

        log.info("`%s` granted to %s", self.path, proxy.description)
        return CheckResult(permissions=granted)

    def is_granted_to(self, proxy: UserProxy) -> bool:
        """Whether the caller holds this permission, honouring the namespace policy."""
        candidates = self.schema.config.granted_path_candidates(str(self.path))
        granted = proxy.granted_permissions
        return any(candidate in granted for candidate in candidates)

    def dependencies_as_permissions(self) -> list[Permission]:
        """Resolve dependency paths from the schema root, in declaration order."""
        permissions: list[Permission] = []
        for path in self.dependencies:
            permissions.extend(self.schema.root_group.find_permissions_from_path(path))
        return permissions

    def first_unsatisfied_rule(self, user: Any, obj: Any) -> Optional[RuleExecution]:
        """Evaluate own rules in order; return the first that fails, else None."""
        proxy = wrap_user(user, self.schema.config.user_proxy_class)
        for rule in self.rules.values():
            execution = RuleExecution(rule, proxy.user, obj)
            if not execution.satisfied:
                return execution
        return None

    def first_unsatisfied_included_rule(self, user: Any, obj: Any) -> Optional[RuleExecution]:
        """Evaluate included rules in order; return the first that fails, else None.

        Inclusions whose condition is false are skipped. Each rule runs
        against the translated object and validates it against the rule's
        own required types.
        """
        proxy = wrap_user(user, self.schema.config.user_proxy_class)
        available_rules: Optional[dict[str, Rule]] = None

        for included_rule in self.included_rules.values():
            if not included_rule.applies_to(proxy.user, obj):
                continue

            translated_object = included_rule.translate_object(obj)

            if available_rules is None:
                available_rules = self.group.all_defined_rules()
            rule = available_rules.get(included_rule.key)
            if rule is None:
                raise SchemaDefinitionError(
                    f"No defined rule with key {included_rule.key} is available for {self.path}",
                    key=included_rule.key,
                    permission=self.path,
                )

            if not accepts_object(rule.required_object_types, translated_object):
                raise InvalidObjectError(
                    f"The {type(translated_object).__name__} object provided to included rule ({rule.key}) "
                    f"for {self.path} was not valid. Valid object types are: {', '.join(rule.required_object_types)}",
                    permission=self.path,
                    rule=rule.key,
                    object_type=type(translated_object).__name__,
                )

            execution = RuleExecution(rule, proxy.user, translated_object)
            if not execution.satisfied:
                return execution
        return None

    def _deny(
        self,
        denial: DenialCode,
        message: str,
        proxy: UserProxy,
        obj: Any,
        rule: Optional[RuleExecution] = None,
    ) -> PermissionDeniedError:
        return PermissionDeniedError(denial, message, self, user=proxy.user, obj=obj, rule=rule)


__all__ = ["CheckResult", "Permission"]
