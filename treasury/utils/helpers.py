"""Small, dependency-free helpers used across the codebase."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import Any, Generic, TypeVar

V = TypeVar("V")


def enum_suffix(value: object) -> str | None:
    """Strip the ``EType::`` prefix from a serialized engine enum.

    ``"EFortRarity::Epic"`` -> ``"Epic"``; plain names pass through.
    """
    if value is None:
        return None
    text = str(value)
    return text.rsplit("::", 1)[-1] if text else None


def strip_extension(path: str) -> str:
    """Drop the final extension from an asset path, keeping directories."""
    slash = path.rfind("/")
    dot = path.rfind(".")
    return path[:dot] if dot > slash else path


def file_stem(path: str) -> str:
    """Last path segment without its extension."""
    return strip_extension(path.rsplit("/", 1)[-1])


class CaseInsensitiveDict(MutableMapping[str, V], Generic[V]):
    """Mapping with case-insensitive string keys.

    Iteration and serialization use the spelling of the most recent
    write; a write under a different casing replaces the value.
    """

    def __init__(self, data: Mapping[str, V] | Iterable[tuple[str, V]] | None = None):
        self._store: dict[str, tuple[str, V]] = {}
        if data is not None:
            self.update(data)

    @staticmethod
    def _fold(key: str) -> str:
        return key.casefold()

    def __setitem__(self, key: str, value: V) -> None:
        self._store[self._fold(key)] = (key, value)

    def __getitem__(self, key: str) -> V:
        return self._store[self._fold(key)][1]

    def __delitem__(self, key: str) -> None:
        del self._store[self._fold(key)]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._fold(key) in self._store

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        other_folded = CaseInsensitiveDict(other)
        return dict(self.folded_items()) == dict(other_folded.folded_items())

    def folded_items(self) -> Iterator[tuple[str, V]]:
        """Items keyed by the casefolded key."""
        return ((k, v) for k, (_, v) in self._store.items())

    def copy(self) -> "CaseInsensitiveDict[V]":
        return CaseInsensitiveDict(self.items())

    def to_dict(self) -> dict[str, V]:
        """Plain dict with the original key spellings."""
        return dict(self.items())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_dict()!r})"

    @classmethod
    def from_unique_pairs(cls, pairs: Iterable[tuple[str, V]]) -> "CaseInsensitiveDict[V]":
        """Build from pairs, raising ValueError if two keys differ only by case."""
        result: CaseInsensitiveDict[V] = cls()
        for key, value in pairs:
            if key in result:
                raise ValueError(f"Duplicate key: {key!r}")
            result[key] = value
        return result


def first_present(*values: Any) -> Any:
    """Return the first value that is not None (None if all are)."""
    for value in values:
        if value is not None:
            return value
    return None
