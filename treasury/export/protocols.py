"""Interfaces between the pipeline and its pluggable stages.

Exporters pull records out of the asset source into a private buffer.
Post-exporters refine the merged data set. Artifacts serialize a slice
of the data set to a named file. The orchestrator only talks to these
protocols, so third-party stages plug in without subclassing.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from treasury.export.types import ExportProgress

if TYPE_CHECKING:
    from treasury.export.cancellation import CancellationToken
    from treasury.export.output import AssetOutput, ExportedAssets

ProgressCallback = Callable[[str, ExportProgress], None]
"""Receives ``(unit name, progress)``. Advisory only; may be called from any thread."""


@runtime_checkable
class Exporter(Protocol):
    """An extraction unit."""

    @property
    def name(self) -> str:
        ...

    @property
    def assets_loaded(self) -> int:
        ...

    @property
    def failed_assets(self) -> frozenset[str]:
        ...

    def observe_asset(self, path: str) -> bool:
        """Offer one eligible path; returns True if the unit keeps it."""
        ...

    def run(
        self,
        output: AssetOutput,
        cancellation: CancellationToken,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Extract everything of interest into ``output``."""
        ...


@runtime_checkable
class PostExporter(Protocol):
    """A refinement unit over the merged data set."""

    @property
    def name(self) -> str:
        ...

    @property
    def assets_loaded(self) -> int:
        ...

    @property
    def failed_assets(self) -> frozenset[str]:
        ...

    def run(self, exported: ExportedAssets, cancellation: CancellationToken) -> None:
        ...


@runtime_checkable
class ExportArtifact(Protocol):
    """A named output file generated from the merged data set."""

    @property
    def name(self) -> str:
        ...

    def generate(self, exported: ExportedAssets, cancellation: CancellationToken) -> Path:
        """Write the artifact and return its path. Raises ArtifactError."""
        ...
