"""Exporter for item-definition assets (one item per asset).

Subclasses set ``type`` (the template ID prefix), a path filter, and
optionally override export_asset() to add images, fill subtype fields
or reject an item.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any, ClassVar

from treasury.assets.records import AssetRecord, ItemQuantityPair, RowHandle
from treasury.export.cancellation import CancellationToken
from treasury.export.exporters.base import BaseExporter, ExporterContext
from treasury.export.output import AssetOutput
from treasury.export.protocols import ProgressCallback
from treasury.export.types import ImageType, ItemRecipe, NamedItemData, Rarity, parse_tier
from treasury.types.errors import AssetLoadError, RunCancelledError
from treasury.utils.helpers import CaseInsensitiveDict, first_present, strip_extension


def convert_recipe(row: Mapping[str, Any]) -> ItemRecipe:
    """Build an ItemRecipe from a recipe table row.

    The first entry of RecipeResults is the result; Amount is only set
    when its quantity is not 1. Raises ValueError for malformed rows or
    duplicate ingredients.
    """
    results = row.get("RecipeResults") or []
    if not results:
        raise ValueError("recipe has no results")
    result = ItemQuantityPair.from_value(results[0])
    costs = [ItemQuantityPair.from_value(c) for c in row.get("RecipeCosts") or []]
    return ItemRecipe(
        result=result.template_id,
        cost=CaseInsensitiveDict.from_unique_pairs((c.template_id, c.quantity) for c in costs),
        amount=result.quantity if result.quantity != 1 else None,
    )


class UObjectExporter(BaseExporter):
    type: ClassVar[str] = ""
    item_data_class: ClassVar[type[NamedItemData]] = NamedItemData
    path_fragment: ClassVar[str] = ""

    ignore_load_failures: ClassVar[bool] = False
    require_rarity: ClassVar[bool] = False

    def __init__(self, context: ExporterContext) -> None:
        super().__init__(context)
        self._recipe_tables: CaseInsensitiveDict[AssetRecord | None] = CaseInsensitiveDict()
        self._recipe_lock = threading.Lock()
        self._processed = 0
        self._total = 0

    def interested_in_asset(self, path: str) -> bool:
        return bool(self.path_fragment) and self.path_fragment.casefold() in path.casefold()

    def export_asset(
        self,
        record: AssetRecord,
        item: NamedItemData,
        images: dict[ImageType, str],
        output: AssetOutput,
    ) -> bool:
        """Per-type hook. Return False to drop the item.

        May edit ``item`` and ``images`` in place, or register extra
        records (display-name corrections) on ``output``.
        """
        return True

    # ------------------------------------------------------------------
    # Recipe table
    # ------------------------------------------------------------------

    def _recipe_table(self, table_path: str) -> AssetRecord | None:
        with self._recipe_lock:
            if table_path in self._recipe_tables:
                return self._recipe_tables[table_path]
            self.count_asset_loaded()
            try:
                table = self.source.load(table_path)
            except AssetLoadError as exc:
                self.log.opt(exception=exc).error(f"Failed to load recipe table {table_path}")
                self.record_failure(table_path)
                table = None
            else:
                self.log.debug(f"Loaded recipe table {table_path} ({len(table.row_map)} rows)")
            self._recipe_tables[table_path] = table
            return table

    def lookup_recipe(self, handle: RowHandle | None) -> ItemRecipe | None:
        if handle is None or not handle.is_usable:
            return None
        table = self._recipe_table(handle.table_path)
        if table is None:
            return None
        row = table.find_row(handle.row_name)
        if not isinstance(row, Mapping):
            self.log.warning(f"Recipe row {handle.row_name} not found in {handle.table_path}")
            return None
        return convert_recipe(row)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_assets(
        self,
        output: AssetOutput,
        cancellation: CancellationToken,
        progress: ProgressCallback | None,
    ) -> None:
        paths = self.limited(self.asset_paths)
        self._total = len(paths)
        self._processed = 0
        self.report(progress, 0, self._total, f"Exporting {self.type}")

        def _one(path: str) -> None:
            with self._counter_lock:
                self._processed += 1
                num = self._processed
            self.log.info(f"Processing {self.type} {num} of {self._total}")
            self.report(progress, num, self._total, strip_extension(path))
            try:
                self.export_path(path, output, cancellation)
            except RunCancelledError:
                raise
            except Exception as exc:
                self.log.opt(exception=exc).error(f"Exception while processing {path}")
                self.record_failure(path)

        self.for_each_parallel(paths, _one, cancellation)

        self.report(progress, self._processed, self._total, "")
        self.log.info(
            f"Exported {self.type}: {len(paths)} processed, {len(self.failed_assets)} failed"
        )

    def _load(self, path: str, cancellation: CancellationToken) -> AssetRecord | None:
        if not self.ignore_load_failures:
            return self.load_asset(path, cancellation)
        self.count_asset_loaded()
        try:
            record = self.source.load(path)
        except AssetLoadError as exc:
            self.log.debug(f"Ignoring unloadable {strip_extension(path)}: {exc}")
            return None
        cancellation.raise_if_cancelled()
        return record

    def export_path(self, path: str, output: AssetOutput, cancellation: CancellationToken) -> None:
        record = self._load(path, cancellation)
        if record is None:
            return

        display_name = first_present(
            record.get_text("ItemName"),
            record.get_text("DisplayName"),
            f"<{record.name}>",
        )
        description = first_present(
            record.get_text("ItemDescription"),
            record.get_text("Description"),
        )
        item = self.item_data_class(
            asset_path=strip_extension(path),
            name=record.name,
            type=self.type,
            display_name=display_name.strip(),
            description=description,
            is_inventory_limit_exempt=not bool(record.get("bInventorySizeLimited", True)),
        )

        tier = parse_tier(record.get_from_data_list("Tier"))
        if tier:
            item.tier = tier

        rarity = Rarity.parse(record.get("Rarity"), Rarity.UNCOMMON)
        if self.require_rarity or rarity is not Rarity.UNCOMMON:
            item.rarity = rarity.value

        conversions = record.get_row_handles("ConversionRecipes")
        item.tier_up_recipe = self.lookup_recipe(conversions[0] if conversions else None)
        item.rarity_up_recipe = self.lookup_recipe(record.get_row_handle("UpgradeRarityRecipeHandle"))
        item.recycle_recipe = self.lookup_recipe(record.get_row_handle("SacrificeRecipe"))

        xp_handle = record.get_row_handle("LevelToSacrificeXpHandle", table_key="CurveTable")
        if xp_handle is not None and xp_handle.is_usable:
            item.level_to_xp_row = xp_handle.row_name

        cancellation.raise_if_cancelled()

        images: dict[ImageType, str] = {}
        if small := record.get_soft_asset_path_from_data_list("Icon"):
            images[ImageType.SMALL_PREVIEW] = small
        if large := record.get_soft_asset_path_from_data_list("LargeIcon"):
            images[ImageType.LARGE_PREVIEW] = large

        if not self.export_asset(record, item, images, output):
            return

        output.add_named_item(item.template_id, item, images)
