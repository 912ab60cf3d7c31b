"""Shared serialization utilities.

Artifacts are written with PascalCase keys and without null fields, so
the dataclass models carry snake_case attributes and are converted here.
A field can override its JSON name with ``metadata={"json": "Name"}``.

Used by the artifact generators (writing) and the item-data registry
(reading back a previous run's artifact for merging).
"""

import dataclasses
import math
import types
import typing
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

JSON_NAME = "json"


def to_pascal_case(name: str) -> str:
    """``level_to_xp_row`` -> ``LevelToXpRow``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def json_name(field: dataclasses.Field) -> str:
    """JSON key for a dataclass field."""
    return field.metadata.get(JSON_NAME) or to_pascal_case(field.name)


def serialize_to_primitives(data: Any) -> Any:
    """Convert complex Python types to JSON-serializable primitives.

    Handles:
    - Primitives (str, int, float, bool, None): returned as-is
    - datetime: converted to ISO format string
    - Enum: converted to value
    - dataclass: converted with to_json_dict() (PascalCase, no nulls)
    - Mapping (including CaseInsensitiveDict): keys and values serialized
    - list/tuple/set: items serialized (sets sorted for stable output)
    - Special floats (inf, nan): converted to None

    Examples:
        >>> from dataclasses import dataclass
        >>> @dataclass
        ... class Stat:
        ...     first_level: int
        ...     label: str | None = None
        >>> serialize_to_primitives(Stat(40))
        {'FirstLevel': 40}
    """
    if data is None:
        return None

    if isinstance(data, Enum):
        return data.value

    if isinstance(data, (str, int, bool)):
        return data

    if isinstance(data, float):
        if math.isnan(data) or math.isinf(data):
            return None
        return data

    if isinstance(data, datetime):
        return data.isoformat()

    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return to_json_dict(data)

    if isinstance(data, Mapping):
        return {
            serialize_to_primitives(k): serialize_to_primitives(v)
            for k, v in data.items()
        }

    if isinstance(data, (set, frozenset)):
        return [serialize_to_primitives(item) for item in sorted(data)]

    if isinstance(data, (list, tuple)):
        return [serialize_to_primitives(item) for item in data]

    raise TypeError(f"Cannot serialize object of type {type(data).__name__}")


def to_json_dict(obj: Any) -> dict[str, Any]:
    """Serialize a dataclass instance, omitting fields whose value is None."""
    result: dict[str, Any] = {}
    for field in dataclasses.fields(obj):
        if field.metadata.get("skip"):
            continue
        value = getattr(obj, field.name)
        if value is None:
            continue
        result[json_name(field)] = serialize_to_primitives(value)
    return result


def from_json_dict(cls: type, data: Mapping[str, Any]) -> Any:
    """Build a dataclass from a dict produced by to_json_dict().

    Keys are matched case-insensitively; unknown keys are ignored.
    Nested dataclass fields (including ``X | None``) are rebuilt, and
    enum-typed fields are converted from their values.
    """
    folded = {str(k).casefold(): v for k, v in data.items()}
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for field in dataclasses.fields(cls):
        if not field.init or field.metadata.get("skip"):
            continue
        key = json_name(field).casefold()
        if key not in folded:
            continue
        kwargs[field.name] = _coerce(hints.get(field.name, Any), folded[key])
    return cls(**kwargs)


def _coerce(hint: Any, value: Any) -> Any:
    if value is None:
        return None
    origin = typing.get_origin(hint)
    if origin in (typing.Union, types.UnionType):
        candidates = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(candidates) == 1:
            return _coerce(candidates[0], value)
        return value
    if isinstance(hint, type):
        if dataclasses.is_dataclass(hint) and isinstance(value, Mapping):
            return from_json_dict(hint, value)
        if issubclass(hint, Enum):
            return hint(value)
    return value
