from __future__ import annotations

from time import sleep
from typing import Any, Callable


class StopPolling(Exception):
    """Raised by a `poll` callback to end the loop; ``value`` is returned by `poll`."""

    def __init__(self, value: Any = None):
        super().__init__(value)
        self.value = value


def poll(interval: float, fn: Callable[[], Any]) -> Any:
    """Call ``fn`` every ``interval`` seconds until it raises `StopPolling`."""
    while True:
        try:
            fn()
        except StopPolling as stop:
            return stop.value
        sleep(interval)


def wait_until(interval: float, predicate: Callable[[], Any]) -> None:
    while not predicate():
        sleep(interval)


def wait_while(interval: float, predicate: Callable[[], Any]) -> None:
    while predicate():
        sleep(interval)
