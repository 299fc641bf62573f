"""Rules, included rules and rule executions.

A ``Rule`` is a named predicate over ``(user, object)``. Rules are either
local to one permission or defined globally on a permission group, where
every permission in the group's subtree may include them by key.

Predicates are called with as many of ``(user, object, execution)`` as their
signature accepts, so a predicate that wants to explain a denial can take the
execution and write into ``execution.memo``::

    def owns_project(user, project, execution):
        execution.memo["owner_id"] = project.owner_id
        return project.owner_id == user.id

Only parameters without defaults are filled, so ``lambda user, obj, strict=False``
is called with ``(user, obj)`` and ``strict`` stays False. A predicate that wants
the execution must declare it without a default.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

from .nodes import validate_key


def _positional_arity(func: Callable[..., Any], maximum: int) -> int:
    """Number of leading positional arguments to pass ``func``, capped at ``maximum``.

    Parameters with defaults keep their defaults and are never filled.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return maximum

    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return maximum
        if parameter.kind not in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            continue
        if parameter.default is not inspect.Parameter.empty:
            break
        count += 1
    return min(count, maximum)


class _Callback:
    """A stored function value called with the leading arguments it accepts."""

    __slots__ = ("func", "arity")

    def __init__(self, func: Callable[..., Any], maximum: int) -> None:
        if not callable(func):
            raise TypeError(f"Expected a callable, got {type(func).__name__}")
        self.func = func
        self.arity = _positional_arity(func, maximum)

    def __call__(self, *args: Any) -> Any:
        return self.func(*args[: self.arity])


def type_name(type_or_name: Any) -> str:
    """Normalise a required object type given as a class or a name."""
    if isinstance(type_or_name, type):
        return type_or_name.__name__
    return str(type_or_name)


def accepts_object(required_object_types: list[str], obj: Any) -> bool:
    """True if no types are required or ``obj``'s class name is among them."""
    return not required_object_types or type(obj).__name__ in required_object_types


class Rule:
    """A named predicate over (user, object)."""

    def __init__(self, key: str, predicate: Callable[..., Any], *required_object_types: Any) -> None:
        self.key = validate_key(key)
        self._predicate = _Callback(predicate, 3)
        self.required_object_types: list[str] = []
        for required_type in required_object_types:
            self.add_required_object_type(required_type)

    @property
    def predicate(self) -> Callable[..., Any]:
        return self._predicate.func

    def add_required_object_type(self, type_or_name: Any) -> str | bool:
        name = type_name(type_or_name)
        if name in self.required_object_types:
            return False
        self.required_object_types.append(name)
        return name

    def evaluate(self, execution: RuleExecution) -> bool:
        return bool(self._predicate(execution.user, execution.object, execution))

    def __repr__(self) -> str:
        return f"<Rule {self.key}>"


class IncludedRule:
    """A reference from a permission to a globally defined rule.

    Attributes:
        key: Key of the rule in the permission's ancestor chain.
        condition: Optional ``(user, object) -> bool``; the rule is skipped when false.
        translate: Optional ``(object) -> object`` applied before the rule runs.
    """

    def __init__(
        self,
        key: str,
        condition: Optional[Callable[..., Any]] = None,
        translate: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.key = validate_key(key)
        self._condition = _Callback(condition, 2) if condition is not None else None
        self._translate = _Callback(translate, 1) if translate is not None else None

    @property
    def condition(self) -> Optional[Callable[..., Any]]:
        return self._condition.func if self._condition is not None else None

    @property
    def translate(self) -> Optional[Callable[..., Any]]:
        return self._translate.func if self._translate is not None else None

    def applies_to(self, user: Any, obj: Any) -> bool:
        if self._condition is None:
            return True
        return bool(self._condition(user, obj))

    def translate_object(self, obj: Any) -> Any:
        if self._translate is None:
            return obj
        return self._translate(obj)

    def __repr__(self) -> str:
        return f"<IncludedRule {self.key}>"


class RuleExecution:
    """One evaluation of a rule for a user and object.

    ``satisfied`` calls the predicate once and remembers the answer. ``memo``
    belongs to this execution alone and carries whatever the predicate chose
    to record; denial errors expose the execution as ``error.rule``.
    """

    def __init__(self, rule: Rule, user: Any, obj: Any) -> None:
        self.rule = rule
        self.user = user
        self.object = obj
        self.memo: dict[str, Any] = {}
        self._satisfied: Optional[bool] = None

    @property
    def satisfied(self) -> bool:
        if self._satisfied is None:
            self._satisfied = self.rule.evaluate(self)
        return self._satisfied

    def __repr__(self) -> str:
        state = "pending" if self._satisfied is None else ("satisfied" if self._satisfied else "unsatisfied")
        return f"<RuleExecution {self.rule.key} {state}>"


__all__ = [
    "IncludedRule",
    "Rule",
    "RuleExecution",
    "accepts_object",
    "type_name",
]
