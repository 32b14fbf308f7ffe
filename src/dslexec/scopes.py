from __future__ import annotations

import builtins
import logging
from collections.abc import Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Iterable, Iterator

from .arity import accepts_call
from .common import NOT_FOUND
from .errors import UnresolvedMethodError
from .resolvers import AttributeResolver, Resolver, as_resolver

logger = logging.getLogger(__name__)

_ACTIVE_SCOPE: ContextVar["ResolutionScope | None"] = ContextVar(
    "dslexec_resolution_scope", default=None
)


class ForwardedCall:
    """
    A name resolved to callables found in the namespace chain.

    Only built when several namespaces define a callable under the same name.
    Calling it dispatches to the first candidate that accepts the call.
    """

    def __init__(self, name: str, candidates: list[tuple[Resolver, Callable[..., Any]]]):
        if not candidates:
            raise ValueError("ForwardedCall needs at least one candidate")
        self.name = name
        self.candidates = list(candidates)

    @property
    def resolved(self) -> Callable[..., Any]:
        return self.candidates[0][1]

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        for resolver, candidate in self.candidates:
            if accepts_call(candidate, args, kwargs):
                return candidate(*args, **kwargs)
        receiver = self.candidates[0][0].namespace
        raise UnresolvedMethodError(
            self.name,
            receiver,
            f"no callable {self.name!r} accepting {_describe_call(args, kwargs)} "
            f"in {[r.namespace for r, _ in self.candidates]!r}",
        )

    def __getattr__(self, name: str) -> Any:
        if name == "candidates" or _is_dunder(name):
            raise AttributeError(name)
        return getattr(self.resolved, name)

    def __repr__(self) -> str:
        return f"<ForwardedCall {self.name!r} -> {self.resolved!r}>"


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _is_forwardable(value: Any) -> bool:
    return callable(value) and not isinstance(value, type)


def _describe_call(args: tuple, kwargs: dict) -> str:
    described = f"{len(args)} positional argument(s)"
    if kwargs:
        described += f" and keyword(s) {', '.join(sorted(kwargs))}"
    return described


class ResolutionScope:
    """One entry of the namespace stack: a target and its fallback chain."""

    def __init__(
        self,
        target: Any,
        namespaces: Iterable[Any],
        parent: "ResolutionScope | None" = None,
    ):
        self.target = target
        self.namespaces = tuple(namespaces)
        self.resolvers = tuple(as_resolver(ns) for ns in self.namespaces)
        self.target_resolver = None if target is None else AttributeResolver(target)
        self.parent = parent

    def lookup(self, name: str) -> tuple[Any, Any] | None:
        """
        Return ``(receiver, value)`` for ``name`` or ``None``.

        ``receiver`` is the target or the namespace that defines the name. A
        callable defined by several namespaces comes back as a `ForwardedCall`
        over all of them; a single definition comes back as itself.
        """
        if self.target_resolver is not None:
            value = self.target_resolver.try_resolve(name)
            if value is not NOT_FOUND:
                return self.target, value

        for index, resolver in enumerate(self.resolvers):
            value = resolver.try_resolve(name)
            if value is NOT_FOUND:
                continue
            if not _is_forwardable(value):
                return resolver.namespace, value
            candidates = [(resolver, value)]
            for other in self.resolvers[index + 1 :]:
                extra = other.try_resolve(name)
                if extra is not NOT_FOUND and _is_forwardable(extra):
                    candidates.append((other, extra))
            if len(candidates) == 1:
                return resolver.namespace, value
            return resolver.namespace, ForwardedCall(name, candidates)
        return None

    def resolve(self, name: str) -> Any:
        found = self.lookup(name)
        return NOT_FOUND if found is None else found[1]

    def __repr__(self) -> str:
        return f"<ResolutionScope target={self.target!r} namespaces={self.namespaces!r}>"


def current_scope() -> ResolutionScope | None:
    return _ACTIVE_SCOPE.get()


def active_namespaces() -> tuple[Any, ...]:
    scope = _ACTIVE_SCOPE.get()
    return () if scope is None else scope.namespaces


@contextmanager
def scoped_namespaces(target: Any, namespaces: Iterable[Any]) -> Iterator[ResolutionScope]:
    """
    Make ``namespaces`` the fallback chain for ``target`` while the block runs.

    An inner scope replaces the outer chain; the outer one is restored on every
    exit path.
    """
    scope = ResolutionScope(target, namespaces, parent=_ACTIVE_SCOPE.get())
    token = _ACTIVE_SCOPE.set(scope)
    logger.debug("entering %r", scope)
    try:
        yield scope
    finally:
        _ACTIVE_SCOPE.reset(token)
        logger.debug("left %r", scope)


def enter(target: Any, namespaces: Iterable[Any], body: Callable[[], Any]) -> Any:
    with scoped_namespaces(target, namespaces):
        return body()


class ResolvingGlobals(dict):
    """
    Globals mapping of an evaluated script.

    Names the script binds live in the dict itself. Anything else is looked up
    in ``lexical`` (the module globals of a function block), then through the
    active resolution scope, then in the ``fallbacks`` mappings in order; what
    is still missing is left to the builtins and finally to ``NameError``.

    Class bodies read their globals with exact dict access, so classes built
    by the script get a `ClassBodyNamespace` that repeats this lookup. The
    `builtins_namespace` installs the hook doing that.
    """

    def __init__(
        self,
        initial: Mapping[str, Any] | None = None,
        *,
        lexical: Mapping[str, Any] | None = None,
        fallbacks: Iterable[Mapping[str, Any] | None] = (),
    ):
        super().__init__(initial or {})
        self.lexical = lexical
        self.fallbacks = tuple(m for m in fallbacks if m is not None)

    def resolve(self, name: str) -> Any:
        """Value of a name the script did not bind; `KeyError` when unknown."""
        if _is_dunder(name):
            raise KeyError(name)
        if self.lexical is not None and name in self.lexical:
            return self.lexical[name]
        scope = _ACTIVE_SCOPE.get()
        if scope is not None:
            value = scope.resolve(name)
            if value is not NOT_FOUND:
                return value
        for mapping in self.fallbacks:
            if name in mapping:
                return mapping[name]
        raise KeyError(name)

    __missing__ = resolve

    def bindings(self) -> dict[str, Any]:
        """Top-level names the script bound, without module dunders."""
        return {
            name: value
            for name, value in self.items()
            if not _is_dunder(name)
        }

    def build_class(self, func, name, *bases, metaclass=None, **kwds):
        """`__build_class__` for class statements executed by the script."""
        if metaclass is None:
            metaclass = type
        elif not isinstance(metaclass, type):
            return builtins.__build_class__(func, name, *bases, metaclass=metaclass, **kwds)
        builder = _ClassBuilder(self, metaclass)
        return builtins.__build_class__(func, name, *bases, metaclass=builder, **kwds)

    def builtins_namespace(self) -> dict[str, Any]:
        namespace = dict(vars(builtins))
        namespace["__build_class__"] = self.build_class
        return namespace


class ClassBodyNamespace(dict):
    """
    Namespace a class body of the script runs in.

    Names the body neither binds nor finds in the script globals resolve the
    way the script's own globals do.
    """

    def __init__(self, globals_dict: ResolvingGlobals):
        super().__init__()
        self.globals_dict = globals_dict

    def __missing__(self, name: str) -> Any:
        # Script bindings and builtins are found by the interpreter itself.
        if dict.__contains__(self.globals_dict, name):
            raise KeyError(name)
        return self.globals_dict.resolve(name)


def _most_derived_metaclass(metaclass: type, bases: tuple) -> type:
    winner = metaclass
    for base in bases:
        base_meta = type(base)
        if issubclass(winner, base_meta):
            continue
        if issubclass(base_meta, winner):
            winner = base_meta
            continue
        raise TypeError(
            "metaclass conflict: the metaclass of a derived class must be a "
            "(non-strict) subclass of the metaclasses of all its bases"
        )
    return winner


class _ClassBuilder:
    """
    Stands in for the metaclass while a script class is built.

    It prepares a `ClassBodyNamespace` when the real metaclass would use a
    plain dict, then hands everything to the real metaclass.
    """

    def __init__(self, globals_dict: ResolvingGlobals, metaclass: type):
        self.globals_dict = globals_dict
        self.metaclass = metaclass

    def __prepare__(self, name, bases, **kwds):
        self.metaclass = _most_derived_metaclass(self.metaclass, bases)
        namespace = self.metaclass.__prepare__(name, bases, **kwds)
        if type(namespace) is not dict:
            return namespace
        resolving = ClassBodyNamespace(self.globals_dict)
        resolving.update(namespace)
        return resolving

    def __call__(self, name, bases, namespace, **kwds):
        return self.metaclass(name, bases, namespace, **kwds)
