"""Per-exporter buffers and the shared data set they merge into.

AssetOutput is private to one exporter while it runs. Several workers
of that exporter write to it at once, so every add is a single locked
step; an item and its images go in together or not at all.

ExportedAssets is created once per run. Merging happens on one thread;
afterwards post-exporters mutate it concurrently through update methods
that take a per-key lock. Post-exporters may change existing items but
never add new template IDs.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager

from treasury.export.cancellation import CancellationToken
from treasury.export.types import (
    HeroStatTable,
    ImageType,
    ItemRecipe,
    NamedItemData,
)
from treasury.utils.helpers import CaseInsensitiveDict
from treasury.utils.logger import logger


class ExportedAssets:
    """The shared data set for one run."""

    def __init__(self) -> None:
        self.named_items: CaseInsensitiveDict[NamedItemData] = CaseInsensitiveDict()
        self.named_item_images: CaseInsensitiveDict[dict[ImageType, str]] = CaseInsensitiveDict()
        self.recipes: CaseInsensitiveDict[ItemRecipe] = CaseInsensitiveDict()
        self.hero_stats: HeroStatTable | None = None
        self.homebase_rating_requirements: dict[str, int] | None = None
        self._lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}

    # ------------------------------------------------------------------
    # Merge-time additions (single-threaded)
    # ------------------------------------------------------------------

    def add_named_item(self, template_id: str, item: NamedItemData) -> None:
        self.named_items[template_id] = item

    def add_image(self, template_id: str, image_type: ImageType, asset_path: str) -> None:
        with self.key_lock(template_id):
            self.named_item_images.setdefault(template_id, {})[image_type] = asset_path

    def add_recipe(self, recipe: ItemRecipe) -> None:
        self.recipes[recipe.result] = recipe

    # ------------------------------------------------------------------
    # Concurrent refinement
    # ------------------------------------------------------------------

    @contextmanager
    def key_lock(self, template_id: str) -> Iterator[None]:
        """Critical section for one template ID."""
        folded = template_id.casefold()
        with self._lock:
            lock = self._key_locks.setdefault(folded, threading.Lock())
        with lock:
            yield

    def update_named_item(
        self,
        template_id: str,
        update: Callable[[NamedItemData], None],
    ) -> bool:
        """Apply ``update`` to an existing item under its key lock.

        Returns False (and does nothing) if the item does not exist.
        """
        with self.key_lock(template_id):
            item = self.named_items.get(template_id)
            if item is None:
                return False
            update(item)
            return True

    def set_image_file(self, template_id: str, image_type: ImageType, file_path: str) -> bool:
        """Record a materialized image file on an existing item."""

        def _set(item: NamedItemData) -> None:
            if item.image_paths is None:
                item.image_paths = {}
            item.image_paths[image_type] = file_path

        return self.update_named_item(template_id, _set)

    def image_references(self) -> list[tuple[str, ImageType, str]]:
        """Snapshot of (template ID, image type, source asset path)."""
        with self._lock:
            entries = list(self.named_item_images.items())
        return [
            (template_id, image_type, path)
            for template_id, images in entries
            for image_type, path in images.items()
        ]


class AssetOutput:
    """Write-only buffer owned by one exporter until merge."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._named_items: CaseInsensitiveDict[NamedItemData] = CaseInsensitiveDict()
        self._images: CaseInsensitiveDict[dict[ImageType, str]] = CaseInsensitiveDict()
        self._recipes: list[ItemRecipe] = []
        self._hero_stats: HeroStatTable | None = None
        self._homebase_ratings: dict[str, int] | None = None
        self._display_name_corrections: CaseInsensitiveDict[tuple[str, ...]] = CaseInsensitiveDict()

    def add_named_item(
        self,
        template_id: str,
        item: NamedItemData,
        images: Mapping[ImageType, str] | None = None,
    ) -> None:
        with self._lock:
            self._named_items[template_id] = item
            if images:
                self._images.setdefault(template_id, {}).update(images)

    def add_image_for_named_item(self, template_id: str, image_type: ImageType, asset_path: str) -> None:
        with self._lock:
            self._images.setdefault(template_id, {})[image_type] = asset_path

    def add_recipe(self, recipe: ItemRecipe) -> None:
        with self._lock:
            self._recipes.append(recipe)

    def add_hero_stats(self, table: HeroStatTable) -> None:
        with self._lock:
            self._hero_stats = table

    def add_homebase_rating_requirements(self, ratings: Mapping[str, int]) -> None:
        with self._lock:
            self._homebase_ratings = dict(ratings)

    def add_display_name_correction(self, template_id: str, *source_template_ids: str) -> None:
        """After merge, copy the display name of the first source item found."""
        with self._lock:
            self._display_name_corrections[template_id] = source_template_ids

    @property
    def item_count(self) -> int:
        return len(self._named_items)

    @property
    def is_empty(self) -> bool:
        return not (
            self._named_items or self._recipes or self._hero_stats or self._homebase_ratings
        )

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def copy_to(
        self,
        exported: ExportedAssets,
        cancellation: CancellationToken | None = None,
        owner: str = "",
    ) -> None:
        """Copy this buffer's contents into the shared data set."""
        with self._lock:
            for template_id, item in self._named_items.items():
                if cancellation is not None:
                    cancellation.raise_if_cancelled()
                if template_id in exported.named_items:
                    logger.warning(f"{owner}: {template_id} was already exported by another unit; replacing it")
                exported.add_named_item(template_id, item)

            for template_id, images in self._images.items():
                for image_type, path in images.items():
                    exported.add_image(template_id, image_type, path)

            for recipe in self._recipes:
                exported.add_recipe(recipe)

            if self._hero_stats is not None:
                exported.hero_stats = self._hero_stats
            if self._homebase_ratings is not None:
                exported.homebase_rating_requirements = dict(self._homebase_ratings)

    def apply_display_name_corrections(self, exported: ExportedAssets) -> int:
        """Second merge pass; returns the number of names corrected."""
        corrected = 0
        with self._lock:
            corrections = list(self._display_name_corrections.items())
        for template_id, sources in corrections:
            target = exported.named_items.get(template_id)
            if target is None:
                continue
            for source_id in sources:
                source = exported.named_items.get(source_id)
                if source is not None and not source.has_placeholder_name:
                    target.display_name = source.display_name
                    corrected += 1
                    break
        return corrected
