from __future__ import annotations

NOT_FOUND = object()


class _Unbounded:
    """Marker for an upper argument bound that does not exist (``*args``)."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNBOUNDED"

    def __reduce__(self):
        return "UNBOUNDED"


UNBOUNDED = _Unbounded()
