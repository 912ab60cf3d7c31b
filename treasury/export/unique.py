"""Collision-free key derivation shared between threads."""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

TOriginal = TypeVar("TOriginal", bound=Hashable)
TTransformed = TypeVar("TTransformed", bound=Hashable)


def _identity(value):
    return value


class ConcurrentUniqueTransformer(Generic[TOriginal, TTransformed]):
    """Derives a unique output key per distinct input.

    ``transform`` produces a candidate that may collide with a key
    already handed out for a different input; ``mutate`` is applied to
    the candidate until it is free. Each input keeps the key it got the
    first time.

    ``input_key`` and ``output_key`` normalize values before comparison
    (e.g. ``str.casefold`` for case-insensitive matching); the values
    returned are never normalized.

    Thread safety: one lock covers lookup, derivation and commit, so
    ``transform`` and ``mutate`` run under it and must not call back
    into the transformer.
    """

    def __init__(
        self,
        transform: Callable[[TOriginal], TTransformed],
        mutate: Callable[[TTransformed], TTransformed],
        input_key: Callable[[TOriginal], Hashable] = _identity,
        output_key: Callable[[TTransformed], Hashable] = _identity,
    ) -> None:
        self._transform = transform
        self._mutate = mutate
        self._input_key = input_key
        self._output_key = output_key
        self._seen_inputs: dict[Hashable, TTransformed] = {}
        self._seen_outputs: set[Hashable] = set()
        self._lock = threading.Lock()

    def try_transform_if_novel(self, original: TOriginal) -> tuple[bool, TTransformed]:
        """Return ``(is_new, transformed)``.

        ``is_new`` is True the first time ``original`` is seen and False
        on every later call, which returns the same ``transformed``.
        """
        in_key = self._input_key(original)
        with self._lock:
            cached = self._seen_inputs.get(in_key)
            if cached is not None or in_key in self._seen_inputs:
                return False, cached

            transformed = self._transform(original)
            while self._output_key(transformed) in self._seen_outputs:
                transformed = self._mutate(transformed)

            self._seen_outputs.add(self._output_key(transformed))
            self._seen_inputs[in_key] = transformed
            return True, transformed

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen_inputs)
