"""Export stages: buffers, the shared data set and stage interfaces.

Exporters live in treasury.export.exporters, refinement units in
treasury.export.post_exporters and the orchestrator in
treasury.export.pipeline.
"""

from treasury.export.cancellation import CancellationToken
from treasury.export.output import AssetOutput, ExportedAssets
from treasury.export.protocols import (
    ExportArtifact,
    Exporter,
    PostExporter,
    ProgressCallback,
)
from treasury.export.types import (
    AssetLoadingStats,
    ExportProgress,
    HeroStat,
    HeroStatTable,
    ImageType,
    ItemRecipe,
    NamedItemData,
    Rarity,
    SchematicItemData,
    WeaponItemData,
)
from treasury.export.unique import ConcurrentUniqueTransformer

__all__ = [
    "AssetLoadingStats",
    "AssetOutput",
    "CancellationToken",
    "ConcurrentUniqueTransformer",
    "ExportArtifact",
    "ExportProgress",
    "ExportedAssets",
    "Exporter",
    "HeroStat",
    "HeroStatTable",
    "ImageType",
    "ItemRecipe",
    "NamedItemData",
    "PostExporter",
    "ProgressCallback",
    "Rarity",
    "SchematicItemData",
    "WeaponItemData",
]
