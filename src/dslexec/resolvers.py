from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .common import NOT_FOUND


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


class Resolver:
    """
    One entry of a fallback chain.

    `try_resolve` returns the value bound to ``name`` or ``NOT_FOUND``; it never
    raises for a name it does not know.
    """

    namespace: Any = None

    def try_resolve(self, name: str) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.namespace!r}>"


class AttributeResolver(Resolver):
    """Resolves names as attributes of a module, class or instance."""

    def __init__(self, namespace: Any, *, include_dunders: bool = False):
        self.namespace = namespace
        self.include_dunders = include_dunders

    def try_resolve(self, name: str) -> Any:
        if not self.include_dunders and _is_dunder(name):
            return NOT_FOUND
        try:
            return getattr(self.namespace, name)
        except AttributeError:
            return NOT_FOUND


class MappingResolver(Resolver):
    def __init__(self, namespace: Mapping[str, Any]):
        self.namespace = namespace

    def try_resolve(self, name: str) -> Any:
        try:
            return self.namespace[name]
        except KeyError:
            return NOT_FOUND


def as_resolver(namespace: Any) -> Resolver:
    if isinstance(namespace, Resolver):
        return namespace
    if isinstance(namespace, Mapping):
        return MappingResolver(namespace)
    return AttributeResolver(namespace)
