from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class EvaluationFailure:
    """Structured description of a failed evaluation."""

    kind: str
    message: str
    origin_file: str | None = None
    origin_line: int | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "EvaluationFailure":
        if isinstance(exc, DSLError):
            return exc.failure()
        return cls(
            kind=type(exc).__name__,
            message=str(exc),
            origin_file=getattr(exc, "__dsl_origin_file__", None),
            origin_line=getattr(exc, "__dsl_origin_line__", None),
        )

    def location(self) -> str:
        if self.origin_file is None:
            return "<unknown>"
        if self.origin_line is None:
            return self.origin_file
        return f"{self.origin_file}:{self.origin_line}"


class DSLError(Exception):
    """Base class of the errors raised by the engine itself."""

    kind = "error"

    def __init__(
        self,
        message: str,
        *,
        origin_file: str | None = None,
        origin_line: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.origin_file = origin_file
        self.origin_line = origin_line

    def set_origin(self, origin_file: str | None, origin_line: int | None) -> None:
        self.origin_file = origin_file
        self.origin_line = origin_line

    def failure(self) -> EvaluationFailure:
        return EvaluationFailure(self.kind, self.message, self.origin_file, self.origin_line)

    def __str__(self) -> str:
        if self.origin_file is None:
            return self.message
        return f"{self.message} ({self.failure().location()})"


class UnresolvedIdentifierError(DSLError, NameError):
    """A name is defined neither by the script, the target nor any namespace."""

    kind = "unresolved-identifier"

    def __init__(self, name: str, message: str | None = None, **kwargs: Any):
        if message is None:
            message = f"name {name!r} is not defined on the target or in any namespace"
        super().__init__(message, **kwargs)
        self.name = name


class UnresolvedMethodError(UnresolvedIdentifierError):
    """A called name has no callable accepting the call on its receiver."""

    kind = "unresolved-method"

    def __init__(
        self,
        name: str,
        receiver: Any = None,
        message: str | None = None,
        **kwargs: Any,
    ):
        if message is None:
            message = f"undefined method {name!r} for {receiver!r}"
        super().__init__(name, message, **kwargs)
        self.receiver = receiver


class ArityMismatchError(DSLError, TypeError):
    """A callable was asked to take a positional argument count it rejects."""

    kind = "arity-mismatch"

    def __init__(
        self,
        callable_obj: Any,
        given: int,
        min_required: int,
        max_accepted: Any,
        message: str | None = None,
        **kwargs: Any,
    ):
        if message is None:
            name = getattr(callable_obj, "__qualname__", None) or repr(callable_obj)
            message = (
                f"{name} accepts {min_required}..{max_accepted} positional "
                f"arguments, {given} given"
            )
        super().__init__(message, **kwargs)
        self.callable = callable_obj
        self.given = given
        self.min_required = min_required
        self.max_accepted = max_accepted


class ConfigurationError(DSLError, ValueError):
    """An option mapping holds keys outside the recognized set."""

    kind = "configuration"

    def __init__(self, message: str, unknown: tuple[str, ...] = (), **kwargs: Any):
        super().__init__(message, **kwargs)
        self.unknown = tuple(unknown)
