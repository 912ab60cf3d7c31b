"""``assets.json``: named items, hero stats and homebase ratings."""

from __future__ import annotations

from typing import Any

from treasury.artifacts.base import JsonFileArtifact
from treasury.constants import utcnow
from treasury.export.output import ExportedAssets
from treasury.export.types import decode_named_item
from treasury.utils.serialization import serialize_to_primitives

NAMED_ITEMS = "NamedItems"
HERO_STATS = "HeroStats"
HOMEBASE_RATINGS = "HomebaseRatingRequirements"


class AssetsJsonArtifact(JsonFileArtifact):
    def build(self, exported: ExportedAssets) -> dict[str, Any]:
        document: dict[str, Any] = {
            "ExportedAt": utcnow().isoformat(),
            NAMED_ITEMS: {
                template_id: serialize_to_primitives(item)
                for template_id, item in sorted(
                    exported.named_items.items(), key=lambda kv: kv[0].casefold()
                )
            },
        }
        if exported.hero_stats is not None:
            document[HERO_STATS] = serialize_to_primitives(exported.hero_stats.types)
        if exported.homebase_rating_requirements is not None:
            document[HOMEBASE_RATINGS] = dict(exported.homebase_rating_requirements)
        return document

    def _normalize_items(self, items: dict[str, Any]) -> dict[str, Any]:
        """Round-trip previously exported items through the item-data registry."""
        normalized: dict[str, Any] = {}
        for template_id, raw in items.items():
            if not isinstance(raw, dict):
                self.log.warning(f"Dropping malformed item {template_id} from existing {self.name}")
                continue
            try:
                normalized[template_id] = serialize_to_primitives(decode_named_item(raw))
            except (TypeError, ValueError) as exc:
                self.log.warning(f"Keeping {template_id} from existing {self.name} as-is: {exc}")
                normalized[template_id] = raw
        return normalized

    def merge_documents(self, existing: dict[str, Any], fresh: dict[str, Any]) -> dict[str, Any]:
        old_items = existing.get(NAMED_ITEMS)
        if isinstance(old_items, dict):
            existing = {**existing, NAMED_ITEMS: self._normalize_items(old_items)}
        merged = super().merge_documents(existing, fresh)
        if isinstance(merged.get(NAMED_ITEMS), dict):
            merged[NAMED_ITEMS] = dict(
                sorted(merged[NAMED_ITEMS].items(), key=lambda kv: kv[0].casefold())
            )
        return merged
