from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..errors import ConfigurationError

_NO_DEFAULT = object()


def _known_options(known: tuple[Any, ...], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """
    Flatten option declarations into ``{name: default or _NO_DEFAULT}``.

    Each declaration is a name, an iterable of names, or a mapping of
    name -> default. A ``None`` default means "no default".
    """
    result: dict[str, Any] = {}

    def add(name: Any, default: Any = _NO_DEFAULT) -> None:
        if not isinstance(name, str):
            raise TypeError(f"option names must be strings, got {name!r}")
        if default is None:
            default = _NO_DEFAULT
        result[name] = default

    for entry in known:
        if isinstance(entry, str):
            add(entry)
        elif isinstance(entry, Mapping):
            for name, default in entry.items():
                add(name, default)
        elif isinstance(entry, Iterable):
            for name in entry:
                add(name)
        else:
            raise TypeError(f"cannot declare options from {entry!r}")
    for name, default in defaults.items():
        add(name, default)
    return result


def _split(options: Mapping[str, Any] | None, known: dict[str, Any]):
    recognized: dict[str, Any] = {}
    remaining: dict[str, Any] = {}
    for name, value in (options or {}).items():
        if name in known:
            recognized[name] = value
        else:
            remaining[name] = value
    for name, default in known.items():
        if default is not _NO_DEFAULT and name not in recognized:
            recognized[name] = default
    return recognized, remaining


def validate_options(
    options: Mapping[str, Any] | None, *known: Any, **defaults: Any
) -> dict[str, Any]:
    """
    Check ``options`` against the declared option names and fill in defaults.

        validate_options(opts, "a", "b", c=10)
        validate_options(opts, ["a", "b"])
        validate_options(opts, {"a": 10, "c": False})

    Raises `ConfigurationError` for undeclared keys. Defaults are applied only
    to keys absent from ``options``: an explicit ``None`` is kept as given.
    ``False`` is a valid default, ``None`` is not.
    """
    recognized, remaining = _split(options, _known_options(known, defaults))
    if remaining:
        unknown = tuple(sorted(remaining))
        raise ConfigurationError(
            f"unknown option(s) {', '.join(unknown)}",
            unknown,
        )
    return recognized


def filter_options(
    options: Mapping[str, Any] | None, *known: Any, **defaults: Any
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Split ``options`` into ``(recognized, remaining)``.

    ``recognized`` gets the declared defaults like `validate_options`;
    ``remaining`` holds every undeclared key, untouched.
    """
    return _split(options, _known_options(known, defaults))
