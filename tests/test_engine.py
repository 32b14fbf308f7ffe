from __future__ import annotations

import math
import os
import traceback
import types

import pytest

import dslexec
from dslexec import (
    ConfigurationError,
    Engine,
    LoadRegistry,
    RunResult,
    Script,
    UnresolvedIdentifierError,
    UnresolvedMethodError,
    default_engine,
)


class Plain:
    pass


def test_value_of_trailing_expression(engine):
    assert engine.execute(None, [], False, "x = 2\nx * 21") == 42


def test_script_without_trailing_expression_returns_none(engine):
    assert engine.execute(None, [], False, "x = 2") is None
    assert engine.execute(None, [], False, "") is None


def test_function_block_return_value(engine):
    assert engine.execute(None, [], False, lambda: 7) == 7


def test_function_block_may_take_the_target(engine, target):
    assert engine.execute(target, [], False, lambda t: t) is target


def test_bound_method_block_resolves_through_namespaces(engine):
    class Holder:
        def block(self):
            return self, AnswerConstant  # noqa: F821

    holder = Holder()
    namespace = types.SimpleNamespace(AnswerConstant=42)
    assert engine.execute(None, [namespace], False, holder.block) == (holder, 42)


def test_self_is_the_target(engine, target):
    assert engine.execute(target, [], False, "self") is target


def test_target_methods_are_called_bare(engine, target):
    engine.execute(target, [], False, "real_method()\nname('first')")
    assert target.real_method_called
    assert target.names == ["first"]


def test_builtins_stay_reachable(engine):
    assert engine.execute(Plain(), [], False, "len([1, 2])") == 2


def test_exported_bindings_are_seen_by_later_scripts(engine):
    engine.execute(None, [], True, "SHARED = 5")
    assert engine.exports == {"SHARED": 5}
    assert engine.execute(None, [], False, "SHARED + 1") == 6


def test_private_bindings_stay_private(engine):
    engine.execute(None, [], False, "PRIVATE = 5")
    assert "PRIVATE" not in engine.exports
    with pytest.raises(UnresolvedIdentifierError):
        engine.execute(None, [], False, "PRIVATE")


def test_bindings_made_before_a_failure_are_exported(engine):
    with pytest.raises(UnresolvedIdentifierError):
        engine.execute(None, [], True, "BEFORE = 1\nmissing_value")
    assert engine.exports["BEFORE"] == 1


def test_engines_may_share_an_exports_mapping():
    shared = {}
    Engine(exports=shared).execute(None, [], True, "VALUE = 'x'")
    assert Engine(exports=shared).execute(None, [], False, "VALUE") == "x"


def test_preamble_runs_before_every_script():
    engine = Engine(preamble="from math import pi")
    assert engine.execute(None, [], False, "pi") == math.pi


def test_preamble_does_not_shift_line_numbers():
    engine = Engine(preamble="import math\nimport os")
    with pytest.raises(UnresolvedIdentifierError) as excinfo:
        engine.execute(None, [], False, Script("x = 1\nmissing_value", "<lines>"))
    assert excinfo.value.origin_file == "<lines>"
    assert excinfo.value.origin_line == 2


def test_reopen_extends_an_existing_class(engine):
    class Shape:
        pass

    namespace = types.SimpleNamespace(Shape=Shape)
    script = (
        "@reopen(Shape)\n"
        "class Shape:\n"
        "    def sides(self):\n"
        "        return 4\n"
        "Shape().sides()"
    )
    assert engine.execute(None, [namespace], False, script) == 4
    assert Shape().sides() == 4


def test_reopen_rejects_non_classes():
    with pytest.raises(TypeError):
        dslexec.reopen(42)


def test_syntax_errors_point_at_the_real_line(engine):
    with pytest.raises(SyntaxError) as excinfo:
        engine.execute(None, [], False, Script("x = (", "<broken>", first_line=10))
    assert excinfo.value.lineno == 10


def test_first_line_offsets_reported_lines(engine):
    with pytest.raises(UnresolvedIdentifierError) as excinfo:
        engine.execute(None, [], False, Script("x = 1\nmissing_value", "<excerpt>", first_line=10))
    assert excinfo.value.origin_line == 11
    assert traceback.extract_tb(excinfo.value.__traceback__)[-1].lineno == 11


def test_script_rejects_invalid_first_line():
    with pytest.raises(ValueError):
        Script("x = 1", first_line=0)


def test_unsupported_sources_are_rejected(engine):
    with pytest.raises(TypeError):
        engine.execute(None, [], False, 42)


def test_evaluate_returns_run_result(engine):
    result = engine.evaluate(None, [], False, "x = 40\nx + 2")
    assert isinstance(result, RunResult)
    assert result.ok
    assert result.value == 42
    assert result.globals["x"] == 40
    assert result.failure is None
    assert result.raise_for_exception() == 42


def test_evaluate_captures_failures(engine):
    result = engine.evaluate(None, [], False, "missing_value")
    assert not result.ok
    assert isinstance(result.exception, UnresolvedIdentifierError)
    assert result.failure.kind == "unresolved-identifier"
    assert result.failure.origin_line == 1
    assert result.failure.location() == "<dsl>:1"
    with pytest.raises(UnresolvedIdentifierError):
        result.raise_for_exception()


def test_engine_frames_are_stripped_by_default(engine):
    with pytest.raises(UnresolvedIdentifierError) as excinfo:
        engine.execute(None, [], False, "missing_value")
    filenames = [entry.filename for entry in traceback.extract_tb(excinfo.value.__traceback__)]
    assert not any(name.endswith(os.path.join("dslexec", "code.py")) for name in filenames)


def test_full_traceback_keeps_engine_frames():
    engine = Engine(full_traceback=True, registry=LoadRegistry())
    with pytest.raises(UnresolvedIdentifierError) as excinfo:
        engine.execute(None, [], False, "missing_value")
    filenames = [entry.filename for entry in traceback.extract_tb(excinfo.value.__traceback__)]
    assert any(name.endswith(os.path.join("dslexec", "code.py")) for name in filenames)
    assert filenames[-1] == "<dsl>"


def test_from_options():
    engine = Engine.from_options({"full_traceback": True})
    assert engine.full_traceback
    assert engine.preamble is None
    assert Engine.from_options(None).full_traceback is False


def test_from_options_rejects_unknown_keys():
    with pytest.raises(ConfigurationError) as excinfo:
        Engine.from_options({"full_traceback": True, "colour": "blue"})
    assert excinfo.value.unknown == ("colour",)


def test_eval_file(engine, write_script, target):
    path = write_script("real_method()\n'done'\n")
    assert engine.eval_file(path, target, [], False) == "done"
    assert target.real_method_call_count == 1


def test_module_level_functions_use_the_default_engine(target):
    assert dslexec.execute(target, [], False, "self") is target
    assert dslexec.evaluate(None, [], False, "1 + 1").value == 2
    assert default_engine() is default_engine()


def test_attribute_call_on_missing_method(engine):
    receiver = Plain()
    with pytest.raises(UnresolvedMethodError) as excinfo:
        engine.execute(receiver, [], False, "self.missing_method()")
    assert excinfo.value.name == "missing_method"
    assert excinfo.value.receiver is receiver


def test_missing_attribute_read_stays_an_attribute_error(engine):
    with pytest.raises(AttributeError) as excinfo:
        engine.execute(Plain(), [], False, "self.missing_attr")
    assert type(excinfo.value) is AttributeError
