from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass
from typing import Any, Callable

from .common import UNBOUNDED
from .errors import ArityMismatchError

BOUND_METHOD = "bound-method"
LENIENT_CLOSURE = "lenient-closure"
STRICT_CLOSURE = "strict-closure"

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass(frozen=True)
class CallableDescriptor:
    kind: str
    min_required: int
    max_accepted: Any
    requires_keywords: bool = False

    @property
    def unbounded(self) -> bool:
        return self.max_accepted is UNBOUNDED

    def accepts(self, n: int) -> bool:
        """Bound check shared by every strict evaluation."""
        if self.requires_keywords:
            return False
        if n < self.min_required:
            return False
        return self.unbounded or n <= self.max_accepted


class LenientCallable:
    """
    Wraps a callable with the lenient calling convention.

    Extra positional arguments are dropped and missing ones are passed as
    ``None``, so the wrapper can be handed to code that does not care how many
    arguments its callbacks take.
    """

    def __init__(self, func: Callable[..., Any]):
        if not callable(func):
            raise TypeError(f"{func!r} is not callable")
        self.__wrapped__ = func
        functools.update_wrapper(self, func)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        shape = _signature_bounds(self.__wrapped__)
        if shape is None:
            return self.__wrapped__(*args, **kwargs)
        positional, _, max_accepted, _ = shape
        if max_accepted is not UNBOUNDED:
            args = args[:max_accepted]
        if not kwargs and len(args) < positional:
            args = args + (None,) * (positional - len(args))
        return self.__wrapped__(*args, **kwargs)

    def __get__(self, obj: Any, objtype: Any = None) -> Any:
        binder = getattr(self.__wrapped__, "__get__", None)
        if obj is None or binder is None:
            return self
        return LenientCallable(binder(obj, objtype))

    def __repr__(self) -> str:
        return f"<lenient {self.__wrapped__!r}>"


def lenient(func: Callable[..., Any]) -> LenientCallable:
    """Decorator marking ``func`` as a lenient closure."""
    if isinstance(func, LenientCallable):
        return func
    return LenientCallable(func)


def _signature_bounds(func: Callable[..., Any]):
    """
    Return ``(positional, min_required, max_accepted, requires_keywords)`` for
    ``func`` or ``None`` when no signature can be retrieved.

    ``positional`` counts the declared positional parameters, with or without
    defaults.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None

    positional = 0
    min_required = 0
    max_accepted: Any = 0
    requires_keywords = False
    for param in signature.parameters.values():
        if param.kind in _POSITIONAL_KINDS:
            positional += 1
            if param.default is inspect.Parameter.empty:
                min_required += 1
            if max_accepted is not UNBOUNDED:
                max_accepted += 1
        elif param.kind is inspect.Parameter.VAR_POSITIONAL:
            max_accepted = UNBOUNDED
        elif param.kind is inspect.Parameter.KEYWORD_ONLY:
            if param.default is inspect.Parameter.empty:
                requires_keywords = True
    return positional, min_required, max_accepted, requires_keywords


def callable_kind(func: Callable[..., Any]) -> str:
    if isinstance(func, LenientCallable):
        return LENIENT_CLOSURE
    if inspect.ismethod(func) or inspect.isbuiltin(func) or inspect.ismethoddescriptor(func):
        return BOUND_METHOD
    return STRICT_CLOSURE


def describe_callable(func: Callable[..., Any]) -> CallableDescriptor:
    if not callable(func):
        raise TypeError(f"{func!r} is not callable")
    kind = callable_kind(func)
    target = func.__wrapped__ if kind == LENIENT_CLOSURE else func
    shape = _signature_bounds(target)
    if shape is None:
        return CallableDescriptor(kind, 0, UNBOUNDED)
    _, min_required, max_accepted, requires_keywords = shape
    return CallableDescriptor(kind, min_required, max_accepted, requires_keywords)


def is_compatible(func: Callable[..., Any], n: int, strict: bool = False) -> bool:
    """
    Tell whether ``func`` accepts ``n`` positional arguments.

    Lenient closures accept any count unless ``strict`` is requested. Bound
    methods and strict closures are always bound-checked, whatever ``strict``
    says, since Python rejects a mismatched call on them anyway.
    """
    if n < 0:
        raise ValueError("argument count must be non-negative")
    descriptor = describe_callable(func)
    if descriptor.kind == LENIENT_CLOSURE and not strict:
        return True
    return descriptor.accepts(n)


def accepts_call(func: Callable[..., Any], args: tuple, kwargs: dict) -> bool:
    """
    Tell whether ``func`` can take this exact call.

    Positional-only calls follow `is_compatible`. Calls with keywords bind
    the signature, so keyword-only and keyword-passed parameters count.
    """
    if not kwargs:
        return is_compatible(func, len(args))
    if callable_kind(func) == LENIENT_CLOSURE:
        return True
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*args, **kwargs)
    except TypeError:
        return False
    return True


def check_arity(func: Callable[..., Any], n: int, strict: bool = False) -> CallableDescriptor:
    """Like `is_compatible` but raises `ArityMismatchError` on a mismatch."""
    descriptor = describe_callable(func)
    if not is_compatible(func, n, strict=strict):
        raise ArityMismatchError(
            func,
            n,
            descriptor.min_required,
            descriptor.max_accepted,
        )
    return descriptor
