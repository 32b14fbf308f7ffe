from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


def canonical_path(path: str | os.PathLike) -> str:
    return str(Path(path).expanduser().resolve())


class _PathLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class LoadRegistry:
    """
    Process-wide record of the script files loaded so far.

    A path is added only once its evaluation finished without raising.
    `discard` and `clear` exist for tests and tools; normal loading never
    removes entries.
    """

    def __init__(self):
        self._loaded: dict[str, bool] = {}
        self._loading: set[str] = set()
        self._lock = threading.Lock()
        self._path_locks: dict[str, _PathLock] = {}

    @contextmanager
    def locked(self, path: str) -> Iterator[None]:
        """
        Serialize the loads of one canonical path.

        The lock is re-entrant and is dropped once no load of the path holds
        or waits for it.
        """
        with self._lock:
            entry = self._path_locks.get(path)
            if entry is None:
                entry = self._path_locks[path] = _PathLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._path_locks[path]

    def locked_paths(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._path_locks)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        return canonical_path(path) in self._loaded

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths())

    def __len__(self) -> int:
        return len(self._loaded)

    def paths(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._loaded)

    def add(self, path: str | os.PathLike) -> None:
        canonical = canonical_path(path)
        with self._lock:
            self._loaded[canonical] = True
        logger.debug("registered %s as loaded", canonical)

    def discard(self, path: str | os.PathLike) -> None:
        canonical = canonical_path(path)
        with self._lock:
            self._loaded.pop(canonical, None)

    def clear(self) -> None:
        with self._lock:
            self._loaded.clear()

    def is_loading(self, path: str) -> bool:
        with self._lock:
            return path in self._loading

    def begin(self, path: str) -> None:
        with self._lock:
            self._loading.add(path)

    def end(self, path: str) -> None:
        with self._lock:
            self._loading.discard(path)


LOAD_REGISTRY = LoadRegistry()


def loaded_paths() -> tuple[str, ...]:
    return LOAD_REGISTRY.paths()


def is_loaded(path: str | os.PathLike) -> bool:
    return path in LOAD_REGISTRY
