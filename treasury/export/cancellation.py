"""Cooperative cancellation shared by every thread of a run."""

from __future__ import annotations

import threading

from treasury.types.errors import RunCancelledError


class CancellationToken:
    """Set once by the shutdown path; polled by workers.

    Workers call raise_if_cancelled() between assets and right after
    each load, so a cancelled run unwinds within one asset per worker.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = "Run cancelled"

    def cancel(self, reason: str | None = None) -> None:
        if reason:
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelledError(self._reason)

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; returns True if cancelled meanwhile."""
        return self._event.wait(timeout)
