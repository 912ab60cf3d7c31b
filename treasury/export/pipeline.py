"""Export orchestration.

One run goes through these stages, in order:

1. provisioning: keys and type mappings, one retry after a fixed delay
2. interest registration: the file index is filtered and offered to
   every selected exporter
3. extraction: all exporters at once, each into its own AssetOutput
4. merge: buffers are copied into one ExportedAssets in registration
   order, then display-name corrections are applied
5. refinement: all post-exporters at once over the merged set
6. artifacts: written one after another
7. failure report: every failed asset, sorted, at warning level

Failures are classified (see treasury.types.errors). Provisioning and
artifact failures end the run with exit code 1. A failing exporter or
post-exporter is logged and its output dropped. Cancellation unwinds
every stage; a cancelled run writes no artifacts and exits with 130.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from pathlib import Path
from typing import Any

from treasury.artifacts import AssetsJsonArtifact, SchematicsJsonArtifact
from treasury.assets.provisioning import ProvisioningResult, ProvisioningService
from treasury.assets.source import AssetSource
from treasury.config import ExportConfig
from treasury.constants import (
    ASSET_EXTENSIONS,
    EXCLUDED_PATH_FRAGMENTS,
    EXIT_CANCELLED,
    EXIT_FATAL,
    EXIT_SUCCESS,
)
from treasury.export.cancellation import CancellationToken
from treasury.export.exporters import ExporterContext, default_exporters
from treasury.export.output import AssetOutput, ExportedAssets
from treasury.export.post_exporters import ImageFilesPostExporter
from treasury.export.protocols import ExportArtifact, Exporter, PostExporter, ProgressCallback
from treasury.export.types import AssetLoadingStats, ExportProgress
from treasury.types.errors import (
    ArtifactError,
    ErrorCode,
    ExporterError,
    ProvisioningError,
    RunCancelledError,
    TreasuryError,
)
from treasury.utils.logger import bind_run_logger, generate_run_id


class RunStatus(StrEnum):
    SUCCESS = "success"
    FATAL = "fatal"
    CANCELLED = "cancelled"


_EXIT_CODES = {
    RunStatus.SUCCESS: EXIT_SUCCESS,
    RunStatus.FATAL: EXIT_FATAL,
    RunStatus.CANCELLED: EXIT_CANCELLED,
}


@dataclass
class RunResult:
    """What a run did. The CLI only needs ``exit_code``; tests look at the rest."""

    status: RunStatus
    run_id: str
    exported: ExportedAssets | None = None
    artifacts: list[Path] = field(default_factory=list)
    failed_assets: list[str] = field(default_factory=list)
    failed_units: list[str] = field(default_factory=list)
    stats: AssetLoadingStats = field(default_factory=AssetLoadingStats)
    error: TreasuryError | None = None

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.status]


def is_eligible_path(path: str) -> bool:
    """Index filter applied before any exporter sees a path."""
    folded = path.casefold()
    if any(fragment in folded for fragment in EXCLUDED_PATH_FRAGMENTS):
        return False
    return folded.endswith(ASSET_EXTENSIONS)


def select_exporters(exporters: Sequence[Exporter], only: str | None) -> list[Exporter]:
    """Keep exporters named in the comma-separated allow-list (case-insensitive)."""
    if not only or not only.strip():
        return list(exporters)
    wanted = {name.strip().casefold() for name in only.split(",") if name.strip()}
    return [e for e in exporters if e.name.casefold() in wanted]


def default_post_exporters(
    config: ExportConfig, source: AssetSource, logger: Any = None
) -> list[PostExporter]:
    return [
        ImageFilesPostExporter(
            source,
            config.images,
            config.output_directory,
            performance=config.performance,
            logger=logger,
        )
    ]


def default_artifacts(config: ExportConfig, logger: Any = None) -> list[ExportArtifact]:
    return [
        AssetsJsonArtifact(
            config.resolve_output(config.assets_file.path),
            merge=config.merge_for(config.assets_file),
            logger=logger,
        ),
        SchematicsJsonArtifact(
            config.resolve_output(config.schematics_file.path),
            merge=config.merge_for(config.schematics_file),
            logger=logger,
        ),
    ]


class ExportPipeline:
    """Runs one export. Instances are single-use."""

    def __init__(
        self,
        config: ExportConfig,
        *,
        source: AssetSource,
        provisioning: ProvisioningService,
        exporters: Sequence[Exporter] | None = None,
        post_exporters: Sequence[PostExporter] | None = None,
        artifacts: Sequence[ExportArtifact] | None = None,
        progress: ProgressCallback | None = None,
        cancellation: CancellationToken | None = None,
        logger: Any = None,
        run_id: str | None = None,
    ) -> None:
        self.config = config
        self.source = source
        self.provisioning = provisioning
        self.run_id = run_id or generate_run_id()
        self.log = logger.bind(run_id=self.run_id, unit="") if logger is not None else bind_run_logger(self.run_id)
        self.cancellation = cancellation or CancellationToken()
        self._progress = progress

        if exporters is None:
            context = ExporterContext(
                source=source,
                performance=config.performance,
                scope=config.scope,
                logger=self.log,
            )
            exporters = default_exporters(context)
        self.all_exporters: list[Exporter] = list(exporters)
        self.exporters = select_exporters(self.all_exporters, config.scope.only)

        self.post_exporters: list[PostExporter] = list(
            default_post_exporters(config, source, self.log) if post_exporters is None else post_exporters
        )
        self.artifacts: list[ExportArtifact] = list(
            default_artifacts(config, self.log) if artifacts is None else artifacts
        )

        self._failed_assets: set[str] = set()
        self._failed_lock = threading.Lock()
        self._failed_units: list[str] = []

    # ------------------------------------------------------------------
    # Stage 1: provisioning
    # ------------------------------------------------------------------

    def _attempt_provisioning(self) -> ProvisioningResult:
        try:
            return self.provisioning.acquire_keys_and_mappings()
        except RunCancelledError:
            raise
        except Exception as exc:
            self.log.opt(exception=exc).debug("Provisioning service raised")
            return ProvisioningResult.unavailable(str(exc) or type(exc).__name__)

    def provision(self) -> ProvisioningResult:
        self.log.info("Acquiring keys and type mappings")
        result = self._attempt_provisioning()
        if not result.ready:
            delay = self.config.provisioning.retry_delay_seconds
            self.log.warning(f"Provisioning unavailable ({result.detail}); retrying in {delay:g}s")
            if self.cancellation.wait(delay):
                self.cancellation.raise_if_cancelled()
            result = self._attempt_provisioning()
            if not result.ready:
                raise ProvisioningError(f"Keys or mappings unavailable: {result.detail}")

        if result.keys is not None:
            if result.keys.main_key:
                self.log.debug("Submitting main key")
            else:
                self.log.debug("Skipping null main key")
            for dynamic_key in result.keys.dynamic_keys:
                self.log.debug(f"Submitting dynamic key for {dynamic_key.pak_filename}")
        return result

    # ------------------------------------------------------------------
    # Stage 2: interest registration
    # ------------------------------------------------------------------

    def offer_file_list(self) -> int:
        self.log.info("Analyzing file list")
        offered = 0
        for path in self.source.file_index():
            if not is_eligible_path(path):
                continue
            offered += 1
            for exporter in self.exporters:
                exporter.observe_asset(path)
        return offered

    # ------------------------------------------------------------------
    # Stages 3 and 4: extraction and merge
    # ------------------------------------------------------------------

    def _on_progress(self, unit: str, progress: ExportProgress) -> None:
        if progress.failed_assets:
            with self._failed_lock:
                self._failed_assets.update(progress.failed_assets)
        if self._progress is not None:
            self._progress(unit, progress)

    def _collect_failures(self, units: Sequence[Exporter | PostExporter]) -> None:
        with self._failed_lock:
            for unit in units:
                self._failed_assets.update(unit.failed_assets)

    def _unit_failed(self, name: str, exc: BaseException, code: ErrorCode) -> None:
        error = exc if isinstance(exc, ExporterError) else ExporterError(
            name, f"{name} failed: {exc}", code=code, original_error=exc
        )
        self.log.opt(exception=exc).error(error.user_message)
        self._failed_units.append(name)

    def run_exporters(self) -> tuple[ExportedAssets, AssetLoadingStats]:
        if self.config.scope.selected_names:
            names = ", ".join(e.name for e in self.exporters)
            self.log.info(f"Running {len(self.exporters)} selected exporters: {names}")
        else:
            self.log.info("Running all exporters")

        outputs: list[AssetOutput | None] = [AssetOutput() for _ in self.exporters]
        cancelled: RunCancelledError | None = None

        started = time.perf_counter()
        if self.exporters:
            with ThreadPoolExecutor(max_workers=len(self.exporters), thread_name_prefix="exporter") as pool:
                futures = [
                    pool.submit(exporter.run, output, self.cancellation, self._on_progress)
                    for exporter, output in zip(self.exporters, outputs)
                ]
                for index, future in enumerate(futures):
                    exc = future.exception()
                    if exc is None:
                        continue
                    outputs[index] = None
                    if isinstance(exc, RunCancelledError):
                        cancelled = cancelled or exc
                    else:
                        self._unit_failed(self.exporters[index].name, exc, ErrorCode.EXPORTER_FAILED)
        elapsed = timedelta(seconds=time.perf_counter() - started)

        self._collect_failures(self.exporters)
        if cancelled is not None:
            raise cancelled

        exported = ExportedAssets()
        for exporter, output in zip(self.exporters, outputs):
            if output is None:
                continue
            self.cancellation.raise_if_cancelled()
            output.copy_to(exported, self.cancellation, owner=exporter.name)

        corrected = 0
        for output in outputs:
            if output is None:
                continue
            self.cancellation.raise_if_cancelled()
            corrected += output.apply_display_name_corrections(exported)
        if corrected:
            self.log.debug(f"Applied {corrected} display name corrections")

        loaded = sum(e.assets_loaded for e in self.exporters)
        return exported, AssetLoadingStats(loaded, elapsed)

    # ------------------------------------------------------------------
    # Stage 5: refinement
    # ------------------------------------------------------------------

    def run_post_exporters(self, exported: ExportedAssets) -> AssetLoadingStats:
        if not self.post_exporters:
            return AssetLoadingStats()

        cancelled: RunCancelledError | None = None
        started = time.perf_counter()
        with ThreadPoolExecutor(max_workers=len(self.post_exporters), thread_name_prefix="post") as pool:
            futures = [pool.submit(pe.run, exported, self.cancellation) for pe in self.post_exporters]
            for post_exporter, future in zip(self.post_exporters, futures):
                exc = future.exception()
                if exc is None:
                    continue
                if isinstance(exc, RunCancelledError):
                    cancelled = cancelled or exc
                else:
                    self._unit_failed(post_exporter.name, exc, ErrorCode.POST_EXPORTER_FAILED)
        elapsed = timedelta(seconds=time.perf_counter() - started)

        self._collect_failures(self.post_exporters)
        if cancelled is not None:
            raise cancelled
        return AssetLoadingStats(sum(pe.assets_loaded for pe in self.post_exporters), elapsed)

    # ------------------------------------------------------------------
    # Stages 6 and 7: artifacts and report
    # ------------------------------------------------------------------

    def generate_artifacts(self, exported: ExportedAssets) -> list[Path]:
        written = []
        for artifact in self.artifacts:
            self.cancellation.raise_if_cancelled()
            written.append(artifact.generate(exported, self.cancellation))
        return written

    @property
    def failed_assets(self) -> list[str]:
        with self._failed_lock:
            return sorted(self._failed_assets)

    def report_failed_assets(self) -> None:
        failed = self.failed_assets
        if not failed:
            return
        self.log.warning(f"Finished with {len(failed)} failed assets")
        for path in failed:
            self.log.warning(f"Failed asset: {path}")

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self) -> RunResult:
        result = RunResult(status=RunStatus.SUCCESS, run_id=self.run_id)
        try:
            self.provision()
            self.offer_file_list()

            exported, extract_stats = self.run_exporters()
            result.exported = exported
            refine_stats = self.run_post_exporters(exported)
            result.stats = extract_stats + refine_stats
            self.log.info(
                f"Loaded {result.stats.assets_loaded} assets in {result.stats.elapsed} "
                f"({result.stats.ms_per_asset:.1f} ms per asset)"
            )

            result.artifacts = self.generate_artifacts(exported)
            self.report_failed_assets()
        except RunCancelledError as exc:
            self.log.warning(f"Run cancelled: {exc}")
            result.status = RunStatus.CANCELLED
            result.error = exc
        except (ProvisioningError, ArtifactError) as exc:
            self.log.error(exc.get_formatted_message())
            result.status = RunStatus.FATAL
            result.error = exc

        result.failed_assets = self.failed_assets
        result.failed_units = list(self._failed_units)
        return result


def run_pipeline(config: ExportConfig, **kwargs: Any) -> RunResult:
    """Build an ExportPipeline and run it. Keyword arguments go to the constructor."""
    return ExportPipeline(config, **kwargs).run()
