from __future__ import annotations

import ast
import linecache
import os
import re
import types
from pathlib import Path
from typing import Any, Callable

from .arity import accepts_call
from .errors import DSLError, UnresolvedIdentifierError, UnresolvedMethodError
from .scopes import ResolutionScope, ResolvingGlobals

_PACKAGE_DIR = str(Path(__file__).resolve().parent)

# Entries of a class __dict__ that describe the class object itself rather
# than its body.
_CLASS_INTERNALS = frozenset(
    {
        "__dict__",
        "__weakref__",
        "__module__",
        "__qualname__",
        "__doc__",
        "__firstlineno__",
        "__static_attributes__",
    }
)


def reopen(existing: type) -> Callable[[type], type]:
    """
    Class decorator adding the decorated class body to ``existing``.

        @reopen(Shapes.Circle)
        class Circle:
            def area(self):
                ...

    The name is rebound to ``existing``, so the class is extended in place and
    the change is visible wherever the class is used.
    """
    if not isinstance(existing, type):
        raise TypeError(f"reopen() expects a class, got {existing!r}")

    def decorator(cls: type) -> type:
        for name, value in vars(cls).items():
            if name in _CLASS_INTERNALS:
                continue
            setattr(existing, name, value)
        return existing

    return decorator


def _is_internal_frame(frame: types.FrameType) -> bool:
    filename = frame.f_code.co_filename
    return filename.startswith(_PACKAGE_DIR + os.sep)


def _tb_entries(tb: types.TracebackType | None) -> list[types.TracebackType]:
    entries = []
    while tb is not None:
        entries.append(tb)
        tb = tb.tb_next
    return entries


def script_origin(
    tb: types.TracebackType | None, globals_dict: dict
) -> types.TracebackType | None:
    """Innermost traceback entry executing code of the evaluated script."""
    origin = None
    for entry in _tb_entries(tb):
        if entry.tb_frame.f_globals is globals_dict:
            origin = entry
    return origin


def strip_internal_frames(tb: types.TracebackType | None) -> types.TracebackType | None:
    """Copy of ``tb`` without the frames of this package."""
    kept = [entry for entry in _tb_entries(tb) if not _is_internal_frame(entry.tb_frame)]
    if not kept:
        return tb
    stripped = None
    for entry in reversed(kept):
        stripped = types.TracebackType(stripped, entry.tb_frame, entry.tb_lasti, entry.tb_lineno)
    return stripped


def _called_at(filename: str, lineno: int, name: str, *, attribute: bool) -> bool:
    # Line based guess, used where code objects carry no column positions.
    line = linecache.getline(filename, lineno)
    if not line:
        return False
    prefix = r"\.\s*" if attribute else r"(?<![\w.])"
    return re.search(prefix + re.escape(name) + r"\s*\(", line) is not None


def _failing_position(entry: types.TracebackType) -> tuple[int, int] | None:
    """End line and column of the instruction ``entry`` stopped at."""
    positions = getattr(entry.tb_frame.f_code, "co_positions", None)
    if positions is None or entry.tb_lasti < 0:
        return None
    index = entry.tb_lasti // 2
    for offset, (_, end_lineno, _, end_col) in enumerate(positions()):
        if offset == index:
            if end_lineno is None or end_col is None:
                return None
            return end_lineno, end_col
    return None


def _source_calls(filename: str) -> list[ast.Call] | None:
    lines = linecache.getlines(filename)
    if not lines:
        return None
    try:
        tree = ast.parse("".join(lines), filename)
    except (SyntaxError, ValueError):
        return None
    return [node for node in ast.walk(tree) if isinstance(node, ast.Call)]


def _is_called(entry: types.TracebackType, name: str, *, attribute: bool) -> bool:
    """Tell whether the name load ``entry`` failed on is the callee of a call."""
    filename = entry.tb_frame.f_code.co_filename
    position = _failing_position(entry)
    calls = None if position is None else _source_calls(filename)
    if calls is None:
        return _called_at(filename, entry.tb_lineno, name, attribute=attribute)
    for call in calls:
        func = call.func
        if attribute:
            matches = isinstance(func, ast.Attribute) and func.attr == name
        else:
            matches = isinstance(func, ast.Name) and func.id == name
        if matches and (func.end_lineno, func.end_col_offset) == position:
            return True
    return False


def _failing_calls(entry: types.TracebackType) -> list[ast.Call]:
    """Calls the failing instruction of ``entry`` may belong to."""
    calls = _source_calls(entry.tb_frame.f_code.co_filename) or []
    position = _failing_position(entry)
    if position is None:
        return [call for call in calls if call.lineno <= entry.tb_lineno <= call.end_lineno]
    return [call for call in calls if (call.end_lineno, call.end_col_offset) == position]


def _call_shape(call: ast.Call) -> tuple[tuple, dict] | None:
    if any(isinstance(arg, ast.Starred) for arg in call.args):
        return None
    if any(keyword.arg is None for keyword in call.keywords):
        return None
    return (None,) * len(call.args), dict.fromkeys(keyword.arg for keyword in call.keywords)


def _mismatched_call(
    entry: types.TracebackType,
    globals_dict: ResolvingGlobals,
    scope: ResolutionScope,
) -> tuple[str, Any] | None:
    """
    Find the resolved callable a failing call site could not call.

    Returns ``(name, receiver)`` when the call at ``entry`` names a callable
    found on the target or in a namespace and its signature rejects the
    arguments written at the call site.
    """
    local_names = entry.tb_frame.f_locals
    lexical = globals_dict.lexical or {}
    for call in _failing_calls(entry):
        if not isinstance(call.func, ast.Name):
            continue
        name = call.func.id
        if name in local_names or dict.__contains__(globals_dict, name) or name in lexical:
            continue
        found = scope.lookup(name)
        shape = _call_shape(call)
        if found is None or shape is None:
            continue
        receiver, value = found
        if isinstance(value, type) or not callable(value):
            continue
        if not accepts_call(value, *shape):
            return name, receiver
    return None


def classify_failure(
    exc: BaseException,
    globals_dict: ResolvingGlobals,
    scope: ResolutionScope,
) -> tuple[BaseException, str | None, int | None]:
    """
    Map a failure raised while running a script to the error reported for it.

    Returns ``(error, origin_file, origin_line)``. ``error`` is ``exc`` itself
    unless ``exc`` was raised by script code as a plain name or attribute
    lookup failure, or as a call rejected by a resolved callable's signature.
    Those become the matching unresolved-identifier or unresolved-method
    error.
    """
    tb = exc.__traceback__
    origin = script_origin(tb, globals_dict)
    if origin is None:
        return exc, getattr(exc, "filename", None), getattr(exc, "lineno", None)

    origin_file = origin.tb_frame.f_code.co_filename
    origin_line = origin.tb_lineno
    raised_by_script = _tb_entries(tb)[-1] is origin
    receiver = scope.target

    if isinstance(exc, DSLError):
        if exc.origin_file is None:
            exc.set_origin(origin_file, origin_line)
        return exc, origin_file, origin_line

    if not raised_by_script:
        return exc, origin_file, origin_line

    name = getattr(exc, "name", None)
    if type(exc) is NameError and name:
        if _is_called(origin, name, attribute=False):
            error: BaseException = UnresolvedMethodError(
                name,
                receiver,
                f"undefined method {name!r} for {receiver!r}",
                origin_file=origin_file,
                origin_line=origin_line,
            )
        else:
            error = UnresolvedIdentifierError(
                name,
                origin_file=origin_file,
                origin_line=origin_line,
            )
        return error, origin_file, origin_line

    if type(exc) is AttributeError and name:
        if _is_called(origin, name, attribute=True):
            obj = getattr(exc, "obj", None)
            error = UnresolvedMethodError(
                name,
                obj,
                f"undefined method {name!r} for {obj!r}",
                origin_file=origin_file,
                origin_line=origin_line,
            )
            return error, origin_file, origin_line

    if type(exc) is TypeError:
        mismatch = _mismatched_call(origin, globals_dict, scope)
        if mismatch is not None:
            called, owner = mismatch
            error = UnresolvedMethodError(
                called,
                owner,
                f"no callable {called!r} on {owner!r} accepts this call: {exc}",
                origin_file=origin_file,
                origin_line=origin_line,
            )
            return error, origin_file, origin_line

    return exc, origin_file, origin_line
