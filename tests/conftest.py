from __future__ import annotations

import sys
import textwrap
from pathlib import Path

# Allow importing the package when running plain `pytest` without an editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))

import pytest

from dslexec import LOAD_REGISTRY, Engine, LoadRegistry


class CountingTarget:
    """Target object recording what the scripts did to it."""

    def __init__(self):
        self.real_method_call_count = 0
        self.names = []

    @property
    def real_method_called(self) -> bool:
        return self.real_method_call_count > 0

    def real_method(self):
        self.real_method_call_count += 1

    def name(self, value):
        self.names.append(value)


@pytest.fixture
def target():
    return CountingTarget()


@pytest.fixture
def engine():
    return Engine(registry=LoadRegistry())


@pytest.fixture
def write_script(tmp_path):
    def _write(source: str, name: str = "script.py") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"))
        return path

    return _write


@pytest.fixture(autouse=True)
def _reset_load_registry():
    yield
    LOAD_REGISTRY.clear()
