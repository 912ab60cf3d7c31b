"""Item-definition exporters."""

from __future__ import annotations

import re

from treasury.assets.records import AssetRecord
from treasury.export.exporters.uobject import UObjectExporter
from treasury.export.output import AssetOutput
from treasury.export.types import (
    ImageType,
    NamedItemData,
    SchematicItemData,
    WeaponItemData,
)
from treasury.utils.helpers import enum_suffix


class CardPackExporter(UObjectExporter):
    type = "CardPack"
    path_fragment = "/Items/CardPacks/"

    def export_asset(self, record, item, images, output):
        if pack_image := record.get_soft_asset_path("PackImage"):
            images[ImageType.PACK_IMAGE] = pack_image
        # large icons make better previews for packs
        if large := record.get_soft_asset_path_from_data_list("LargeIcon"):
            images[ImageType.SMALL_PREVIEW] = large
        return True


class SurvivorPortraitExporter(UObjectExporter):
    type = "WorkerPortrait"
    path_fragment = "/Icon-Worker/IconDefinitions"

    def export_asset(self, record, item, images, output):
        small = record.get_soft_asset_path("SmallImage")
        large = record.get_soft_asset_path("LargeImage") or small
        small = small or large
        if small:
            images[ImageType.SMALL_PREVIEW] = small
        if large:
            images[ImageType.LARGE_PREVIEW] = large
        return True


class WeaponExporter(UObjectExporter):
    type = "Weapon"
    item_data_class = WeaponItemData
    path_fragment = "/Items/Weapons/"

    def export_asset(
        self,
        record: AssetRecord,
        item: NamedItemData,
        images: dict[ImageType, str],
        output: AssetOutput,
    ) -> bool:
        item.sub_type = enum_suffix(record.get_from_data_list("SubType"))
        item.damage_type = enum_suffix(record.get_from_data_list("DamageType"))
        return True


class TrapExporter(UObjectExporter):
    type = "Trap"
    path_fragment = "/Items/Traps/"


_SCHEMATIC_PREFIX = re.compile(r"^sid_", re.IGNORECASE)


class SchematicExporter(UObjectExporter):
    """Schematics.

    Many schematics carry no name of their own. For those a display-name
    correction is registered so that, after merge, the schematic takes
    the name of the weapon or trap it crafts (``sid_x`` -> ``wid_x`` /
    ``tid_x``).
    """

    type = "Schematic"
    item_data_class = SchematicItemData
    path_fragment = "/Items/Schematics/"
    require_rarity = True

    def export_asset(
        self,
        record: AssetRecord,
        item: NamedItemData,
        images: dict[ImageType, str],
        output: AssetOutput,
    ) -> bool:
        item.sub_type = enum_suffix(record.get_from_data_list("SubType"))
        if item.has_placeholder_name and _SCHEMATIC_PREFIX.match(item.name):
            output.add_display_name_correction(
                item.template_id,
                "Weapon:" + _SCHEMATIC_PREFIX.sub("wid_", item.name),
                "Trap:" + _SCHEMATIC_PREFIX.sub("tid_", item.name),
            )
        return True
