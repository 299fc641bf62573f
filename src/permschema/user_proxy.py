"""Identity adapter giving the engine a uniform view of a caller's identity.

A check needs three things from an identity: the permission strings it has
been granted, the contexts it is acting in and a description for log lines.
``UserProxy`` reads them from the wrapped identity; subclass it and set
``SchemaConfig.user_proxy_class`` when identities expose them differently.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


class UserProxy:
    """Default identity adapter.

    Reads ``granted_permissions`` and ``permission_contexts`` from the
    identity, either as attributes (callables are invoked) or as mapping
    keys. Anything missing is treated as empty.

    Example::

        class Account:
            granted_permissions = {"projects.view", "projects.edit"}
            permission_contexts = {"admin"}

        proxy = UserProxy(Account())
        "projects.edit" in proxy.granted_permissions  # True
    """

    granted_permissions_attribute = "granted_permissions"
    contexts_attribute = "permission_contexts"

    def __init__(self, user: Any) -> None:
        self.user = user

    @property
    def granted_permissions(self) -> set[str]:
        return self._read_set(self.granted_permissions_attribute)

    @property
    def contexts(self) -> set[str]:
        return self._read_set(self.contexts_attribute)

    @property
    def description(self) -> str:
        if self.user is None:
            return "anonymous user"
        return f"{type(self.user).__name__} {self.user!s}"

    def _read_set(self, name: str) -> set[str]:
        if isinstance(self.user, Mapping):
            value = self.user.get(name)
        else:
            value = getattr(self.user, name, None)
            if callable(value):
                value = value()

        if value is None:
            return set()
        if isinstance(value, str):
            return {value}
        if isinstance(value, Iterable):
            return {str(item) for item in value}
        raise TypeError(f"{name} must be an iterable of strings, got {type(value).__name__}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.description}>"


def wrap_user(user_or_proxy: Any, proxy_class: type[UserProxy] = UserProxy) -> UserProxy:
    """Return ``user_or_proxy`` unchanged if it is already a proxy, else wrap it."""
    if isinstance(user_or_proxy, UserProxy):
        return user_or_proxy
    return proxy_class(user_or_proxy)


__all__ = ["UserProxy", "wrap_user"]
