"""Decoded asset records.

An AssetRecord is one export from a package as the asset source hands
it over: a name, an engine class, a property bag and (for data tables
and curve tables) a row map. The accessors here cover what exporters
need from the bag:

- plain properties, looked up case-insensitively like the engine does
- localized text (FText), which may arrive as a plain string or as a
  dict carrying LocalizedString / SourceString
- the "DataList" convention, where item definitions keep a list of
  structs and the first struct that has a property wins
- soft object paths, either strings or {"AssetPathName": ...}
- row handles into data tables and curve tables
"""

from __future__ import annotations

import bisect
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

_MISSING = object()
_NONE_NAMES = {"", "none"}


def _is_none_name(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in _NONE_NAMES)


def resolve_text(value: Any, localization: Mapping[str, Mapping[str, str]] | None = None) -> str | None:
    """Resolve an FText-like value to its display string.

    With a localization table (namespace -> key -> text), a text that
    carries Namespace and Key is looked up there first.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        if localization is not None and value.get("Key") is not None:
            namespace = localization.get(value.get("Namespace") or "")
            if isinstance(namespace, Mapping):
                text = namespace.get(value["Key"])
                if isinstance(text, str):
                    return text
        for key in ("LocalizedString", "SourceString", "Text", "CultureInvariantString"):
            text = value.get(key)
            if isinstance(text, str):
                return text
    return None


def resolve_object_path(value: Any) -> str | None:
    """Resolve a soft/hard object reference to an asset path string."""
    if isinstance(value, str):
        return None if _is_none_name(value) else value
    if isinstance(value, Mapping):
        for key in ("AssetPathName", "ObjectPath", "AssetPath"):
            inner = value.get(key)
            if inner is not None:
                return resolve_object_path(inner)
    return None


@dataclass(frozen=True)
class RowHandle:
    """Reference to one row of a data table or curve table."""

    table_path: str | None
    row_name: str | None

    @property
    def is_usable(self) -> bool:
        return self.table_path is not None and not _is_none_name(self.row_name)

    @classmethod
    def from_value(cls, value: Any, table_key: str = "DataTable") -> "RowHandle | None":
        if not isinstance(value, Mapping):
            return None
        row_name = value.get("RowName")
        return cls(
            table_path=resolve_object_path(value.get(table_key)),
            row_name=None if _is_none_name(row_name) else str(row_name),
        )


class CurveInterpMode(StrEnum):
    LINEAR = "RCIM_Linear"
    CONSTANT = "RCIM_Constant"
    NONE = "RCIM_None"


@dataclass
class SimpleCurve:
    """A keyed float curve (time -> value).

    Evaluation clamps to the first and last keys and interpolates
    between them according to the interpolation mode.
    """

    keys: list[tuple[float, float]] = field(default_factory=list)
    interp_mode: CurveInterpMode = CurveInterpMode.LINEAR
    default_value: float = 0.0

    def __post_init__(self) -> None:
        self.keys.sort(key=lambda k: k[0])

    @classmethod
    def from_value(cls, value: Mapping[str, Any]) -> "SimpleCurve":
        raw_keys = value.get("Keys") or []
        keys = [(float(k["Time"]), float(k["Value"])) for k in raw_keys]
        mode = value.get("InterpMode") or CurveInterpMode.LINEAR
        try:
            interp = CurveInterpMode(str(mode).rsplit("::", 1)[-1])
        except ValueError:
            interp = CurveInterpMode.LINEAR
        default = value.get("DefaultValue")
        return cls(keys=keys, interp_mode=interp, default_value=float(default) if default is not None else 0.0)

    def eval(self, time: float) -> float:
        if not self.keys:
            return self.default_value
        times = [k[0] for k in self.keys]
        if time <= times[0]:
            return self.keys[0][1]
        if time >= times[-1]:
            return self.keys[-1][1]

        index = bisect.bisect_right(times, time)
        (t0, v0), (t1, v1) = self.keys[index - 1], self.keys[index]
        if self.interp_mode is not CurveInterpMode.LINEAR or t1 == t0:
            return v0
        alpha = (time - t0) / (t1 - t0)
        return v0 + (v1 - v0) * alpha


@dataclass
class AssetRecord:
    """One decoded export."""

    name: str
    class_name: str = "UObject"
    properties: dict[str, Any] = field(default_factory=dict)
    rows: dict[str, Any] | None = None
    localization: Mapping[str, Mapping[str, str]] | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._folded = {k.casefold(): k for k in self.properties}

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], localization: Mapping[str, Mapping[str, str]] | None = None
    ) -> "AssetRecord":
        return cls(
            name=str(data.get("Name", "")),
            class_name=str(data.get("Type") or data.get("Class") or "UObject"),
            properties=dict(data.get("Properties") or {}),
            rows=dict(data["Rows"]) if data.get("Rows") is not None else None,
            localization=localization,
        )

    # ------------------------------------------------------------------
    # Plain properties
    # ------------------------------------------------------------------

    def get(self, name: str, default: Any = None) -> Any:
        key = self._folded.get(name.casefold())
        if key is None:
            return default
        return self.properties[key]

    def get_text(self, name: str) -> str | None:
        return resolve_text(self.get(name), self.localization)

    def get_soft_asset_path(self, name: str) -> str | None:
        return resolve_object_path(self.get(name))

    def get_row_handle(self, name: str, table_key: str = "DataTable") -> RowHandle | None:
        return RowHandle.from_value(self.get(name), table_key)

    def get_row_handles(self, name: str, table_key: str = "DataTable") -> list[RowHandle]:
        values = self.get(name) or []
        if not isinstance(values, list):
            return []
        handles = [RowHandle.from_value(v, table_key) for v in values]
        return [h for h in handles if h is not None]

    # ------------------------------------------------------------------
    # DataList convention
    # ------------------------------------------------------------------

    def get_from_data_list(self, name: str, default: Any = None) -> Any:
        """First value of ``name`` in the DataList structs, else the plain property."""
        for entry in self.get("DataList") or []:
            if not isinstance(entry, Mapping):
                continue
            for key, value in entry.items():
                if key.casefold() == name.casefold():
                    return value
        return self.get(name, default)

    def get_soft_asset_path_from_data_list(self, name: str) -> str | None:
        return resolve_object_path(self.get_from_data_list(name))

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    @property
    def row_map(self) -> dict[str, Any]:
        return self.rows or {}

    def find_row(self, row_name: str) -> Any:
        """Row lookup, case-insensitive like engine FNames. Returns None if absent."""
        rows = self.row_map
        if row_name in rows:
            return rows[row_name]
        folded = row_name.casefold()
        for key, value in rows.items():
            if key.casefold() == folded:
                return value
        return None

    def find_curve(self, row_name: str) -> SimpleCurve | None:
        row = self.find_row(row_name)
        if not isinstance(row, Mapping):
            return None
        return SimpleCurve.from_value(row)


def _name_text(value: Any) -> str | None:
    if isinstance(value, Mapping):
        for key in ("Name", "Text", "PlainText"):
            if value.get(key) is not None:
                return _name_text(value[key])
        return None
    return None if value is None else str(value)


@dataclass(frozen=True)
class ItemQuantityPair:
    """One entry of a recipe's results or costs: ``Type:Name`` times quantity."""

    primary_asset_type: str
    primary_asset_name: str
    quantity: int = 1

    @property
    def template_id(self) -> str:
        return f"{self.primary_asset_type}:{self.primary_asset_name}"

    @classmethod
    def from_value(cls, value: Any) -> "ItemQuantityPair":
        """Parse ``{"ItemPrimaryAssetId": {...}, "Quantity": n}``.

        The asset ID may also be given as a ``"Type:Name"`` string.
        Raises ValueError when the entry is malformed.
        """
        if not isinstance(value, Mapping):
            raise ValueError(f"item quantity pair must be an object, got {type(value).__name__}")
        asset_id = value.get("ItemPrimaryAssetId")
        if isinstance(asset_id, str) and ":" in asset_id:
            asset_type, asset_name = asset_id.split(":", 1)
        elif isinstance(asset_id, Mapping):
            asset_type = _name_text(asset_id.get("PrimaryAssetType"))
            asset_name = _name_text(asset_id.get("PrimaryAssetName"))
        else:
            asset_type = asset_name = None
        if not asset_type or not asset_name:
            raise ValueError(f"item quantity pair has no primary asset ID: {value!r}")
        return cls(asset_type, asset_name, int(value.get("Quantity", 1)))
