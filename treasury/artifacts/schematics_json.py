"""``schematics.json``: crafting recipes with display names.

Exporters store template IDs in recipes; names are only resolved here,
after every unit has merged. Unknown (or unnamed) items keep their
template ID.
"""

from __future__ import annotations

from typing import Any

from treasury.artifacts.base import JsonFileArtifact
from treasury.constants import utcnow
from treasury.export.output import ExportedAssets

RECIPES = "Recipes"


def display_name_for(exported: ExportedAssets, template_id: str) -> str:
    item = exported.named_items.get(template_id)
    if item is None or item.has_placeholder_name:
        return template_id
    return item.display_name


class SchematicsJsonArtifact(JsonFileArtifact):
    def build(self, exported: ExportedAssets) -> dict[str, Any]:
        recipes: dict[str, Any] = {}
        for result_id, recipe in sorted(exported.recipes.items(), key=lambda kv: kv[0].casefold()):
            ingredients: dict[str, int] = {}
            for ingredient_id, quantity in recipe.cost.items():
                name = display_name_for(exported, ingredient_id)
                # two ingredients can share a display name; keep them apart
                ingredients[ingredient_id if name in ingredients else name] = quantity
            entry: dict[str, Any] = {
                "DisplayName": display_name_for(exported, result_id),
                "Ingredients": ingredients,
            }
            if recipe.amount is not None:
                entry["Amount"] = recipe.amount
            recipes[result_id] = entry
        return {"ExportedAt": utcnow().isoformat(), RECIPES: recipes}
