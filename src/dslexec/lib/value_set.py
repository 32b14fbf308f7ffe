from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator, MutableSet, Set
from typing import Any, Callable


class ValueSet(MutableSet):
    """
    Insertion-ordered set that can itself be hashed and serialized.

    Two value sets are equal when they hold the same elements; the hash does
    not depend on insertion order. Serialization goes through the ordered
    element list.
    """

    def __init__(self, elements: Iterable[Hashable] = ()):
        self._elements: dict[Hashable, None] = dict.fromkeys(elements)

    @classmethod
    def _from_iterable(cls, it: Iterable[Hashable]) -> "ValueSet":
        return cls(it)

    # ----- MutableSet protocol -----

    def __contains__(self, value: object) -> bool:
        try:
            return value in self._elements
        except TypeError:
            return False

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def add(self, value: Hashable) -> None:
        self._elements[value] = None

    def discard(self, value: Hashable) -> None:
        self._elements.pop(value, None)

    # ----- value semantics -----

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Set):
            return NotImplemented
        return len(self) == len(other) and all(value in other for value in self)

    def __hash__(self) -> int:
        return hash(frozenset(self._elements))

    def __repr__(self) -> str:
        elements = ", ".join(repr(value) for value in self._elements)
        return f"{type(self).__name__}({{{elements}}})"

    def __str__(self) -> str:
        return "{" + ", ".join(str(value) for value in self._elements) + "}"

    def __reduce__(self):
        return (type(self), (self.to_list(),))

    # ----- named operations -----

    def insert(self, value: Hashable) -> bool:
        """Add ``value``; tell whether it was new."""
        if value in self._elements:
            return False
        self._elements[value] = None
        return True

    def __lshift__(self, value: Hashable) -> "ValueSet":
        self.add(value)
        return self

    def union(self, *others: Iterable[Hashable]) -> "ValueSet":
        result = type(self)(self)
        for other in others:
            result |= other
        return result

    def intersection(self, *others: Iterable[Hashable]) -> "ValueSet":
        result = type(self)(self)
        for other in others:
            other_set = other if isinstance(other, Set) else set(other)
            result = type(self)(value for value in result if value in other_set)
        return result

    def difference(self, *others: Iterable[Hashable]) -> "ValueSet":
        result = type(self)(self)
        for other in others:
            for value in other:
                result.discard(value)
        return result

    def each(self, fn: Callable[[Any], Any]) -> "ValueSet":
        for value in list(self._elements):
            fn(value)
        return self

    def copy(self) -> "ValueSet":
        return type(self)(self)

    def to_list(self) -> list[Hashable]:
        return list(self._elements)

    @classmethod
    def from_list(cls, elements: Iterable[Hashable]) -> "ValueSet":
        return cls(elements)
