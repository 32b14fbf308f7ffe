from __future__ import annotations

import logging
import threading

import pytest

import dslexec
from dslexec import LOAD_REGISTRY, Engine, LoadRegistry, is_loaded, loaded_paths
from dslexec.registry import canonical_path


class LoadingTarget:
    def __init__(self):
        self.count = 0
        self.lock = threading.Lock()

    def real_method(self):
        with self.lock:
            self.count += 1


def test_file_is_evaluated_once(engine, write_script):
    path = write_script("real_method()\n")
    target = LoadingTarget()
    assert engine.load_file(path, target, [], False) is True
    assert engine.load_file(path, target, [], False) is False
    assert target.count == 1
    assert canonical_path(path) in engine.registry.paths()
    assert path in engine.registry
    assert engine.registry.locked_paths() == ()


def test_loaded_file_is_not_read_again(engine, write_script):
    path = write_script("real_method()\n")
    target = LoadingTarget()
    engine.load_file(path, target, [], False)
    path.unlink()
    assert engine.load_file(path, target, [], False) is False


def test_textually_different_paths_to_the_same_file(engine, write_script, tmp_path):
    path = write_script("real_method()\n", "scripts/setup.py")
    target = LoadingTarget()
    assert engine.load_file(path, target, [], False)
    assert not engine.load_file(tmp_path / "scripts" / ".." / "scripts" / "setup.py", target, [], False)
    assert target.count == 1


def test_failed_load_is_retried(engine, write_script):
    path = write_script("real_method()\nraise RuntimeError('fail')\n")
    target = LoadingTarget()
    for attempt in (1, 2):
        with pytest.raises(RuntimeError, match="fail"):
            engine.load_file(path, target, [], False)
        assert target.count == attempt
        assert path not in engine.registry
        assert not engine.registry.is_loading(canonical_path(path))
        assert engine.registry.locked_paths() == ()

    path.write_text("real_method()\n")
    assert engine.load_file(path, target, [], False)
    assert target.count == 3
    assert path in engine.registry


def test_discard_and_clear_allow_reloading(engine, write_script):
    path = write_script("real_method()\n")
    target = LoadingTarget()
    engine.load_file(path, target, [], False)
    engine.registry.discard(path)
    assert engine.load_file(path, target, [], False)
    engine.registry.clear()
    assert len(engine.registry) == 0
    assert engine.load_file(path, target, [], False)
    assert target.count == 3


def test_file_loading_itself_is_not_evaluated_again(engine, write_script, caplog):
    path = write_script("real_method()\nload_self()\n")

    class SelfLoadingTarget(LoadingTarget):
        def load_self(self):
            self.nested_result = engine.load_file(path, self, [], False)

    target = SelfLoadingTarget()
    with caplog.at_level(logging.WARNING, logger="dslexec.core"):
        assert engine.load_file(path, target, [], False)
    assert target.nested_result is False
    assert target.count == 1
    assert "loading itself" in caplog.text
    assert engine.registry.locked_paths() == ()


def test_concurrent_loads_evaluate_once(engine, write_script):
    path = write_script("import time\ntime.sleep(0.05)\nreal_method()\n")
    target = LoadingTarget()
    barrier = threading.Barrier(4)
    results = []

    def load():
        barrier.wait()
        results.append(engine.load_file(path, target, [], False))

    threads = [threading.Thread(target=load) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == [False, False, False, True]
    assert target.count == 1
    assert engine.registry.locked_paths() == ()


def test_engines_keep_separate_registries(write_script):
    path = write_script("real_method()\n")
    target = LoadingTarget()
    assert Engine(registry=LoadRegistry()).load_file(path, target, [], False)
    assert Engine(registry=LoadRegistry()).load_file(path, target, [], False)
    assert target.count == 2


def test_module_level_load_file_uses_the_process_registry(write_script):
    path = write_script("real_method()\n")
    target = LoadingTarget()
    assert dslexec.load_file(path, target, [], False)
    assert not dslexec.load_file(path, target, [], False)
    assert is_loaded(path)
    assert canonical_path(path) in loaded_paths()
    assert list(LOAD_REGISTRY) == [canonical_path(path)]


def test_is_loaded_rejects_non_paths():
    assert not is_loaded(42)
