from __future__ import annotations

import ast
import inspect
import linecache
import os
import types
from pathlib import Path
from typing import Any, Callable

from .arity import is_compatible

PREAMBLE_FILENAME = "<dslexec-preamble>"


class Script:
    """
    Script text together with the place it was written.

    ``first_line`` is the line of ``filename`` holding the first line of
    ``text``, so errors point into the original file even when only an
    excerpt is evaluated.
    """

    def __init__(self, text: str, filename: str = "<dsl>", first_line: int = 1):
        if first_line < 1:
            raise ValueError("first_line must be >= 1")
        self.text = text
        self.filename = os.fspath(filename)
        self.first_line = first_line

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> "Script":
        return cls(Path(path).read_text(), os.fspath(path))

    def __repr__(self) -> str:
        return f"<Script {self.filename}:{self.first_line}>"


def _remember_source(script: Script) -> None:
    # Pseudo files are invisible to linecache; register them so tracebacks
    # can show the failing line.
    if not (script.filename.startswith("<") and script.filename.endswith(">")):
        return
    lines = [""] * (script.first_line - 1) + script.text.splitlines(keepends=True)
    linecache.cache[script.filename] = (len(script.text), None, lines, script.filename)


class ScriptCode:
    """
    Holds:
      - the parsed AST, renumbered to the script's real lines
      - a code object for every statement but a trailing expression
      - an ``eval`` code object for that trailing expression, if any
    """

    lexical_globals = None

    def __init__(self, script: Script):
        self.script = script
        self.filename = script.filename
        offset = script.first_line - 1
        try:
            self.tree = ast.parse(script.text, filename=script.filename, mode="exec")
        except SyntaxError as exc:
            if offset and exc.lineno is not None:
                exc.lineno += offset
                if getattr(exc, "end_lineno", None) is not None:
                    exc.end_lineno += offset
            raise
        if offset:
            ast.increment_lineno(self.tree, offset)
        _remember_source(script)

        body = list(self.tree.body)
        tail = None
        if body and isinstance(body[-1], ast.Expr):
            tail = ast.Expression(body=body.pop().value)

        module = ast.Module(body=body, type_ignores=[])
        self.body_code = compile(module, self.filename, "exec", dont_inherit=True)
        self.tail_code = (
            None if tail is None else compile(tail, self.filename, "eval", dont_inherit=True)
        )

    def run(self, globals_dict: dict, target: Any = None) -> Any:
        exec(self.body_code, globals_dict)
        if self.tail_code is None:
            return None
        return eval(self.tail_code, globals_dict)


class BlockCode:
    """
    A Python function evaluated as a script.

    The function is rebuilt around the evaluation globals so every global name
    it reads goes through the resolution chain. Its closure and defaults are
    kept, and its original globals stay reachable as a fallback.
    """

    def __init__(self, func: Callable[..., Any]):
        self.bound_to = None
        if inspect.ismethod(func):
            self.bound_to = func.__self__
            func = func.__func__
        if not isinstance(func, types.FunctionType):
            raise TypeError(f"cannot evaluate {func!r}: blocks must be plain functions")
        self.func = func
        self.filename = func.__code__.co_filename

    @property
    def lexical_globals(self) -> dict:
        return self.func.__globals__

    def bind(self, globals_dict: dict) -> Callable[..., Any]:
        func = self.func
        rebound = types.FunctionType(
            func.__code__,
            globals_dict,
            func.__name__,
            func.__defaults__,
            func.__closure__,
        )
        rebound.__kwdefaults__ = func.__kwdefaults__
        rebound.__qualname__ = func.__qualname__
        rebound.__dict__.update(func.__dict__)
        if self.bound_to is not None:
            return types.MethodType(rebound, self.bound_to)
        return rebound

    def run(self, globals_dict: dict, target: Any = None) -> Any:
        block = self.bind(globals_dict)
        if is_compatible(block, 1):
            return block(target)
        return block()


def as_code(source: Any) -> ScriptCode | BlockCode:
    if isinstance(source, (ScriptCode, BlockCode)):
        return source
    if isinstance(source, Script):
        return ScriptCode(source)
    if isinstance(source, str):
        return ScriptCode(Script(source))
    if callable(source):
        return BlockCode(source)
    raise TypeError(f"cannot evaluate {type(source).__name__!r} objects")
