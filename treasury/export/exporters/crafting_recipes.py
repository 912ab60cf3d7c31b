"""Crafting recipes from the crafting data table.

Recipes are keyed by the template ID of the thing the player crafts
*from*: weapon and trap results (``wid_`` / ``tid_``) are mapped to their
schematic (``Schematic:sid_``). Ingredients stay as template IDs; the
schematics artifact turns them into display names.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from treasury.assets.records import ItemQuantityPair
from treasury.export.cancellation import CancellationToken
from treasury.export.exporters.base import BaseExporter
from treasury.export.output import AssetOutput
from treasury.export.protocols import ProgressCallback
from treasury.export.types import ItemRecipe
from treasury.utils.helpers import CaseInsensitiveDict

_WEAPON_OR_TRAP = re.compile(r"^[tw]id_", re.IGNORECASE)


def recipe_result_id(result: ItemQuantityPair) -> str:
    name = result.primary_asset_name
    schematic = _WEAPON_OR_TRAP.sub("Schematic:sid_", name)
    if schematic != name:
        return schematic
    return result.template_id


class CraftingRecipeExporter(BaseExporter):
    def interested_in_asset(self, path: str) -> bool:
        return "/craftingrecipes_new" in path.casefold()

    def export_assets(
        self,
        output: AssetOutput,
        cancellation: CancellationToken,
        progress: ProgressCallback | None,
    ) -> None:
        if not self.asset_paths:
            self.log.error("Crafting recipe table not found")
            return

        path = self.asset_paths[0]
        table = self.load_asset(path, cancellation)
        if table is None:
            return

        rows = table.row_map
        self.report(progress, 0, len(rows), "Exporting recipes")

        for done, (row_name, row) in enumerate(rows.items(), 1):
            cancellation.raise_if_cancelled()
            self.report(progress, done, len(rows), row_name)
            if not isinstance(row, Mapping):
                continue
            try:
                results = row.get("RecipeResults") or []
                if not results:
                    raise ValueError("recipe has no results")
                result = ItemQuantityPair.from_value(results[0])
                costs = [ItemQuantityPair.from_value(c) for c in row.get("RecipeCosts") or []]
                recipe = ItemRecipe(
                    result=recipe_result_id(result),
                    cost=CaseInsensitiveDict.from_unique_pairs(
                        (c.template_id, c.quantity) for c in costs
                    ),
                )
            except (TypeError, ValueError) as exc:
                self.log.error(f"Skipping recipe {row_name}: {exc}")
                self.record_failure(path)
                continue
            output.add_recipe(recipe)

        self.report(progress, len(rows), len(rows), "Exported recipes")
