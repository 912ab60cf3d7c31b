"""Base class for extraction units.

An exporter goes through a fixed lifecycle:

    IDLE -> INTEREST_DECLARED -> RUNNING -> COMPLETED | FAILED

Interest is declared by the orchestrator offering every eligible path
from the file index to observe_asset(); the exporter keeps the ones its
interested_in_asset() filter accepts. run() then calls export_assets()
exactly once.

Per-asset failures are recorded in failed_assets (asset path without
extension) and never propagate. Anything else escaping export_assets()
fails the unit: run() raises ExporterError and the orchestrator drops
the unit's buffer. RunCancelledError passes through unchanged.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from treasury.assets.records import AssetRecord
from treasury.assets.source import AssetSource
from treasury.config import PerformanceOptions, ScopeOptions
from treasury.export.cancellation import CancellationToken
from treasury.export.output import AssetOutput
from treasury.export.protocols import ProgressCallback
from treasury.export.types import ExportProgress
from treasury.types.errors import AssetLoadError, ExporterError, RunCancelledError
from treasury.utils.helpers import strip_extension
from treasury.utils.logger import logger as default_logger

T = TypeVar("T")


@dataclass
class ExporterContext:
    """Collaborators shared by every exporter of a run."""

    source: AssetSource
    performance: PerformanceOptions = field(default_factory=PerformanceOptions)
    scope: ScopeOptions = field(default_factory=ScopeOptions)
    logger: Any = None

    def bound_logger(self, unit: str):
        return (self.logger or default_logger).bind(unit=unit)


class ExporterState(StrEnum):
    IDLE = "idle"
    INTEREST_DECLARED = "interest_declared"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class BaseExporter(ABC):
    """Common plumbing: interest, lifecycle, failure tracking, parallelism."""

    def __init__(self, context: ExporterContext) -> None:
        self.context = context
        self.source = context.source
        self.log = context.bound_logger(self.name)
        self.state = ExporterState.IDLE
        self._asset_paths: list[str] = []
        self._failed: set[str] = set()
        self._assets_loaded = 0
        self._counter_lock = threading.Lock()

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def asset_paths(self) -> tuple[str, ...]:
        return tuple(self._asset_paths)

    @property
    def assets_loaded(self) -> int:
        return self._assets_loaded

    @property
    def failed_assets(self) -> frozenset[str]:
        with self._counter_lock:
            return frozenset(self._failed)

    # ------------------------------------------------------------------
    # Interest
    # ------------------------------------------------------------------

    @abstractmethod
    def interested_in_asset(self, path: str) -> bool:
        """Filter applied to each eligible index path."""

    def observe_asset(self, path: str) -> bool:
        if self.state not in (ExporterState.IDLE, ExporterState.INTEREST_DECLARED):
            raise RuntimeError(f"{self.name} cannot take new paths while {self.state}")
        self.state = ExporterState.INTEREST_DECLARED
        if self.interested_in_asset(path):
            self._asset_paths.append(path)
            return True
        return False

    def declare_interest(self, paths: Iterable[str]) -> int:
        """Offer several paths at once; returns how many were kept."""
        return sum(1 for path in paths if self.observe_asset(path))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def export_assets(
        self,
        output: AssetOutput,
        cancellation: CancellationToken,
        progress: ProgressCallback | None,
    ) -> None:
        """Do the extraction. Called once, from run()."""

    def run(
        self,
        output: AssetOutput,
        cancellation: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        if self.state not in (ExporterState.IDLE, ExporterState.INTEREST_DECLARED):
            raise RuntimeError(f"{self.name} has already run ({self.state})")
        token = cancellation or CancellationToken()
        self.state = ExporterState.RUNNING
        try:
            self.export_assets(output, token, progress)
        except RunCancelledError:
            self.state = ExporterState.FAILED
            raise
        except ExporterError:
            self.state = ExporterState.FAILED
            raise
        except Exception as exc:
            self.state = ExporterState.FAILED
            raise ExporterError(self.name, f"{self.name} failed: {exc}", original_error=exc) from exc
        self.state = ExporterState.COMPLETED

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def count_asset_loaded(self, n: int = 1) -> None:
        with self._counter_lock:
            self._assets_loaded += n

    def record_failure(self, path: str) -> None:
        with self._counter_lock:
            self._failed.add(strip_extension(path))

    def load_asset(self, path: str, cancellation: CancellationToken) -> AssetRecord | None:
        """Load one asset, counting it; on failure record it and return None."""
        self.count_asset_loaded()
        try:
            record = self.source.load(path)
        except AssetLoadError as exc:
            self.log.opt(exception=exc).error(f"Failed to load {strip_extension(path)}")
            self.record_failure(path)
            return None
        cancellation.raise_if_cancelled()
        return record

    def limited(self, paths: Sequence[str]) -> list[str]:
        """Apply the per-unit limit from the scope options."""
        limit = self.context.scope.limit
        return list(paths if limit is None else paths[:limit])

    def report(
        self,
        progress: ProgressCallback | None,
        completed: int,
        total: int,
        current: str,
    ) -> None:
        if progress is None:
            return
        progress(
            self.name,
            ExportProgress(
                completed_steps=completed,
                total_steps=total,
                current_item=current,
                failed_assets=self.failed_assets,
                assets_loaded=self.assets_loaded,
            ),
        )

    def for_each_parallel(
        self,
        items: Iterable[T],
        fn: Callable[[T], None],
        cancellation: CancellationToken,
    ) -> None:
        """Run ``fn`` over ``items`` with at most max_parallelism workers.

        The token is checked before each item. The first exception
        (cancellation included) stops scheduling and is re-raised after
        in-flight items finish.
        """
        max_workers = self.context.performance.max_parallelism

        if max_workers <= 1:
            for item in items:
                cancellation.raise_if_cancelled()
                fn(item)
            return

        def _guarded(item: T) -> None:
            cancellation.raise_if_cancelled()
            fn(item)

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=self.name) as pool:
            futures = [pool.submit(_guarded, item) for item in items]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in futures:
                if future.done() and not future.cancelled() and future.exception() is not None:
                    raise future.exception()
