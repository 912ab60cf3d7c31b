"""Data model for exported records.

These types flow from exporters, through buffers and the shared data
set, into the artifacts. Attribute names are snake_case; the JSON names
(PascalCase) come from treasury.utils.serialization.

Item subtypes are resolved through a closed registry keyed by the
``Type`` discriminator. The registry is built once at import time and
validated: every subtype declares exactly one discriminator and no two
subtypes share one. Unknown discriminators decode as the base
NamedItemData instead of failing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from typing import Any, ClassVar

from treasury.utils.helpers import CaseInsensitiveDict, enum_suffix
from treasury.utils.serialization import from_json_dict


class ImageType(StrEnum):
    """Closed set of image kinds an item can reference."""

    SMALL_PREVIEW = "SmallPreview"
    LARGE_PREVIEW = "LargePreview"
    ICON = "Icon"
    PACK_IMAGE = "PackImage"


class Rarity(StrEnum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    MYTHIC = "Mythic"
    TRANSCENDENT = "Transcendent"
    UNATTAINABLE = "Unattainable"

    @classmethod
    def parse(cls, value: Any, default: "Rarity | None" = None) -> "Rarity | None":
        """Accept ``"EFortRarity::Epic"``, ``"Epic"`` or an ordinal."""
        if value is None:
            return default
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            return members[value] if 0 <= value < len(members) else default
        name = (enum_suffix(value) or "").casefold()
        for member in cls:
            if member.value.casefold() == name:
                return member
        return default


_ROMAN_TIERS = {"no_tier": 0, "i": 1, "ii": 2, "iii": 3, "iv": 4, "v": 5,
                "vi": 6, "vii": 7, "viii": 8, "ix": 9, "x": 10}


def parse_tier(value: Any) -> int:
    """``"EFortItemTier::III"`` -> 3. Unknown or missing values are 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    name = (enum_suffix(value) or "").casefold()
    if name.isdigit():
        return int(name)
    return _ROMAN_TIERS.get(name, 0)


def _ingredients(value: Any) -> CaseInsensitiveDict[int]:
    if isinstance(value, CaseInsensitiveDict):
        return value
    pairs = value.items() if isinstance(value, Mapping) else (value or ())
    return CaseInsensitiveDict.from_unique_pairs(pairs)


@dataclass
class ItemRecipe:
    """A recipe producing ``result`` from ingredient template IDs."""

    result: str
    cost: CaseInsensitiveDict[int] = field(default_factory=CaseInsensitiveDict)
    amount: int | None = None

    def __post_init__(self) -> None:
        self.cost = _ingredients(self.cost)


@dataclass
class NamedItemData:
    """An item record, addressed by its template ID ``Type:Name``."""

    discriminator: ClassVar[str | None] = None

    name: str = ""
    type: str = ""
    display_name: str = ""
    asset_path: str | None = None
    description: str | None = None
    rarity: str | None = None
    tier: int | None = None
    is_inventory_limit_exempt: bool = False
    tier_up_recipe: ItemRecipe | None = None
    rarity_up_recipe: ItemRecipe | None = None
    recycle_recipe: ItemRecipe | None = None
    level_to_xp_row: str | None = field(default=None, metadata={"json": "LevelToXPRow"})
    image_paths: dict[ImageType, str] | None = None

    @property
    def template_id(self) -> str:
        return f"{self.type}:{self.name}"

    @property
    def has_placeholder_name(self) -> bool:
        return not self.display_name or (
            self.display_name.startswith("<") and self.display_name.endswith(">")
        )


@dataclass
class WeaponItemData(NamedItemData):
    discriminator: ClassVar[str | None] = "Weapon"

    sub_type: str | None = None
    damage_type: str | None = None


@dataclass
class SchematicItemData(NamedItemData):
    discriminator: ClassVar[str | None] = "Schematic"

    sub_type: str | None = None


# ============================================================================
# Item data registry
# ============================================================================


def build_item_data_registry(
    subtypes: Iterable[type[NamedItemData]],
) -> dict[str, type[NamedItemData]]:
    """Map discriminators to subtypes, validating the declarations."""
    registry: dict[str, type[NamedItemData]] = {}
    for subtype in subtypes:
        if subtype is NamedItemData or not issubclass(subtype, NamedItemData):
            raise TypeError(f"{subtype!r} is not a NamedItemData subtype")
        discriminator = subtype.__dict__.get("discriminator")
        if not discriminator:
            raise TypeError(f"{subtype.__name__} does not declare a discriminator")
        if discriminator in registry:
            raise TypeError(
                f"Discriminator {discriminator!r} declared by both "
                f"{registry[discriminator].__name__} and {subtype.__name__}"
            )
        registry[discriminator] = subtype
    return registry


ITEM_DATA_TYPES: dict[str, type[NamedItemData]] = build_item_data_registry(
    [WeaponItemData, SchematicItemData]
)


def item_data_class(discriminator: str | None) -> type[NamedItemData]:
    """Subtype for a ``Type`` value, or the base shape if none is registered."""
    if not discriminator:
        return NamedItemData
    return ITEM_DATA_TYPES.get(discriminator, NamedItemData)


def decode_named_item(data: Mapping[str, Any]) -> NamedItemData:
    """Decode one item from artifact JSON using the registry."""
    discriminator = next(
        (v for k, v in data.items() if str(k).casefold() == "type"), None
    )
    item = from_json_dict(item_data_class(discriminator), data)
    if item.image_paths:
        item.image_paths = {ImageType(k): v for k, v in item.image_paths.items()}
    return item


# ============================================================================
# Stat tables
# ============================================================================


@dataclass
class HeroStat:
    """A sampled stat curve: ``values[i]`` is the stat at ``first_level + i``."""

    first_level: int
    values: list[float] = field(default_factory=list)


@dataclass
class HeroStatTable:
    # first key: "{subType}_{statType}", e.g. "Ninja_Shields"
    # second key: "{rarity}_T{tier:02}", e.g. "SR_T05"
    # third key: "{statSet}.{stat}", e.g. "FortHealthSet.MaxHealth"
    types: dict[str, dict[str, dict[str, HeroStat]]] = field(default_factory=dict)


# ============================================================================
# Progress and stats
# ============================================================================


@dataclass(frozen=True)
class ExportProgress:
    """Advisory progress report from one exporter."""

    completed_steps: int
    total_steps: int
    current_item: str
    failed_assets: frozenset[str] = frozenset()
    assets_loaded: int = 0


@dataclass(frozen=True)
class AssetLoadingStats:
    assets_loaded: int = 0
    elapsed: timedelta = timedelta()

    def __add__(self, other: "AssetLoadingStats") -> "AssetLoadingStats":
        return AssetLoadingStats(
            self.assets_loaded + other.assets_loaded,
            self.elapsed + other.elapsed,
        )

    @property
    def ms_per_asset(self) -> float:
        return self.elapsed.total_seconds() * 1000 / max(self.assets_loaded, 1)
