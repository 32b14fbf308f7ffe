from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any, Iterable

from .code import PREAMBLE_FILENAME, BlockCode, Script, ScriptCode, as_code
from .errors import EvaluationFailure
from .helpers import classify_failure, reopen, strip_internal_frames
from .lib.options import validate_options
from .registry import LOAD_REGISTRY, LoadRegistry, canonical_path
from .scopes import ResolvingGlobals, scoped_namespaces

logger = logging.getLogger(__name__)

ENGINE_OPTIONS = {"preamble": None, "full_traceback": False, "exports": None, "registry": None}


class RunResult:
    """Outcome of `Engine.evaluate`."""

    def __init__(
        self,
        value: Any = None,
        exception: BaseException | None = None,
        globals_dict: dict | None = None,
    ):
        self.value = value
        self.exception = exception
        self.globals = {} if globals_dict is None else globals_dict

    @property
    def ok(self) -> bool:
        return self.exception is None

    @property
    def failure(self) -> EvaluationFailure | None:
        if self.exception is None:
            return None
        return EvaluationFailure.from_exception(self.exception)

    def raise_for_exception(self) -> Any:
        if self.exception is not None:
            raise self.exception
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"<RunResult value={self.value!r}>"
        return f"<RunResult failed {self.exception!r}>"


class Engine:
    def __init__(
        self,
        preamble: str | None = None,
        *,
        full_traceback: bool = False,
        exports: dict | None = None,
        registry: LoadRegistry | None = None,
    ):
        """
        preamble:
          - None -> scripts run as written
          - "from math import pi" -> run in the script namespace before every script
        full_traceback:
          - False -> the engine's own frames are dropped from error tracebacks
          - True  -> tracebacks are left untouched
        exports:
          - mapping receiving the top-level bindings of scripts executed with
            ``export_to_global=True``; a fresh dict when omitted
        registry:
          - LoadRegistry used by `load_file`; the process-wide one when omitted
        """
        self.preamble = preamble
        self.full_traceback = bool(full_traceback)
        self.exports: dict = {} if exports is None else exports
        self.registry = LOAD_REGISTRY if registry is None else registry
        self._preamble_code = (
            None if preamble is None else ScriptCode(Script(preamble, PREAMBLE_FILENAME))
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None) -> "Engine":
        options = validate_options(options, ENGINE_OPTIONS)
        return cls(**options)

    # ----- evaluation -----

    def _make_globals(self, code: ScriptCode | BlockCode, target: Any) -> ResolvingGlobals:
        script_helpers = {"reopen": reopen, "self": target}
        globals_dict = ResolvingGlobals(
            {"__name__": "__dsl__", "__file__": code.filename},
            lexical=code.lexical_globals,
            fallbacks=(self.exports, script_helpers),
        )
        # Set before any function is built on these globals: functions capture
        # their builtins when created.
        globals_dict["__builtins__"] = globals_dict.builtins_namespace()
        return globals_dict

    def _run(
        self,
        target: Any,
        namespaces: Iterable[Any],
        export_to_global: bool,
        source: Any,
    ) -> tuple[Any, ResolvingGlobals]:
        code = as_code(source)
        globals_dict = self._make_globals(code, target)
        logger.debug("executing %s against %r", code.filename, target)

        with scoped_namespaces(target, namespaces) as scope:
            try:
                if self._preamble_code is not None and isinstance(code, ScriptCode):
                    self._preamble_code.run(globals_dict)
                value = code.run(globals_dict, target)
            except Exception as exc:
                error, origin_file, origin_line = classify_failure(exc, globals_dict, scope)
                tb = exc.__traceback__
                if not self.full_traceback:
                    tb = strip_internal_frames(tb)
                if error is exc:
                    if origin_file is not None and not hasattr(exc, "__dsl_origin_file__"):
                        exc.__dsl_origin_file__ = origin_file
                        exc.__dsl_origin_line__ = origin_line
                        if hasattr(exc, "add_note"):
                            exc.add_note(f"raised by DSL script at {origin_file}:{origin_line}")
                    raise exc.with_traceback(tb)
                raise error.with_traceback(tb) from exc
            finally:
                if export_to_global:
                    self.exports.update(globals_dict.bindings())
        return value, globals_dict

    def execute(
        self,
        target: Any,
        namespaces: Iterable[Any],
        export_to_global: bool,
        source: Any,
    ) -> Any:
        """
        Run ``source`` against ``target`` with ``namespaces`` as fallback chain.

        ``source`` is script text, a `Script` or a function. Returns the value
        of the script's final expression, or the function's return value.
        """
        value, _ = self._run(target, namespaces, export_to_global, source)
        return value

    def evaluate(
        self,
        target: Any,
        namespaces: Iterable[Any],
        export_to_global: bool,
        source: Any,
    ) -> RunResult:
        """Like `execute`, but failures are returned instead of raised."""
        try:
            value, globals_dict = self._run(target, namespaces, export_to_global, source)
        except Exception as exc:
            return RunResult(exception=exc)
        return RunResult(value, None, globals_dict)

    def eval_file(
        self,
        path: str | os.PathLike,
        target: Any,
        namespaces: Iterable[Any],
        export_to_global: bool,
    ) -> Any:
        return self.execute(target, namespaces, export_to_global, Script.from_file(path))

    def load_file(
        self,
        path: str | os.PathLike,
        target: Any,
        namespaces: Iterable[Any],
        export_to_global: bool,
    ) -> bool:
        """
        Evaluate the file at ``path`` unless it was loaded already.

        Returns True when the file was evaluated and False when the registry
        already knew it. A failed evaluation leaves the registry untouched so
        the next call retries.
        """
        canonical = canonical_path(path)
        registry = self.registry
        with registry.locked(canonical):
            if canonical in registry:
                logger.debug("%s already loaded", canonical)
                return False
            if registry.is_loading(canonical):
                logger.warning("%s is loading itself, ignoring the nested load", canonical)
                return False

            registry.begin(canonical)
            try:
                self.eval_file(path, target, namespaces, export_to_global)
            finally:
                registry.end(canonical)
            registry.add(canonical)
        logger.debug("loaded %s", canonical)
        return True


_DEFAULT_ENGINE = Engine()


def default_engine() -> Engine:
    return _DEFAULT_ENGINE


def execute(target: Any, namespaces: Iterable[Any], export_to_global: bool, source: Any) -> Any:
    return _DEFAULT_ENGINE.execute(target, namespaces, export_to_global, source)


def evaluate(
    target: Any, namespaces: Iterable[Any], export_to_global: bool, source: Any
) -> RunResult:
    return _DEFAULT_ENGINE.evaluate(target, namespaces, export_to_global, source)


def eval_file(
    path: str | os.PathLike, target: Any, namespaces: Iterable[Any], export_to_global: bool
) -> Any:
    return _DEFAULT_ENGINE.eval_file(path, target, namespaces, export_to_global)


def load_file(
    path: str | os.PathLike, target: Any, namespaces: Iterable[Any], export_to_global: bool
) -> bool:
    return _DEFAULT_ENGINE.load_file(path, target, namespaces, export_to_global)
