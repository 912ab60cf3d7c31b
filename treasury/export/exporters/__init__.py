"""Extraction units.

The exporter list is explicit. Order matters: buffers are merged in this
order, so when two units ever produce the same key the later one wins.
"""

from treasury.export.exporters.base import BaseExporter, ExporterContext, ExporterState
from treasury.export.exporters.crafting_recipes import CraftingRecipeExporter
from treasury.export.exporters.hero_stats import HeroStatExporter, sample_levels
from treasury.export.exporters.homebase_rating import HomebaseRatingExporter
from treasury.export.exporters.items import (
    CardPackExporter,
    SchematicExporter,
    SurvivorPortraitExporter,
    TrapExporter,
    WeaponExporter,
)
from treasury.export.exporters.uobject import UObjectExporter, convert_recipe

EXPORTER_TYPES: tuple[type[BaseExporter], ...] = (
    CardPackExporter,
    SurvivorPortraitExporter,
    WeaponExporter,
    TrapExporter,
    SchematicExporter,
    HeroStatExporter,
    HomebaseRatingExporter,
    CraftingRecipeExporter,
)


def exporter_names() -> list[str]:
    return [cls.__name__ for cls in EXPORTER_TYPES]


def default_exporters(context: ExporterContext) -> list[BaseExporter]:
    """Instantiate every built-in exporter, in merge order."""
    return [cls(context) for cls in EXPORTER_TYPES]


__all__ = [
    # Base
    "BaseExporter",
    "ExporterContext",
    "ExporterState",
    "UObjectExporter",
    "convert_recipe",
    # Item exporters
    "CardPackExporter",
    "SchematicExporter",
    "SurvivorPortraitExporter",
    "TrapExporter",
    "WeaponExporter",
    # Table exporters
    "CraftingRecipeExporter",
    "HeroStatExporter",
    "HomebaseRatingExporter",
    "sample_levels",
    # Registry
    "EXPORTER_TYPES",
    "default_exporters",
    "exporter_names",
]
