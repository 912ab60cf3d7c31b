"""Split a generated ``assets.json`` into smaller files.

Consumers that load one item type at a time use this layout:

    <dest>/NamedItems/<Type>.json   {"<Type>:<name lowercased>": {...}, ...}
    <dest>/<Section>.json           every other object-valued section
    <dest>/ExportedImages/...       optionally copied or moved along
"""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from treasury.artifacts.base import write_json_atomic
from treasury.constants import DEFAULT_ASSETS_FILE, DEFAULT_IMAGES_DIR
from treasury.types.errors import ArtifactError, ErrorCode
from treasury.utils.logger import logger


class ImageMode(StrEnum):
    IGNORE = "ignore"
    COPY = "copy"
    MOVE = "move"


@dataclass
class SplitResult:
    files: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    images: int = 0


def _group_items(items: dict[str, Any]) -> dict[str, dict[str, Any]]:
    grouped: dict[str, dict[str, Any]] = {}
    for template_id, item in items.items():
        if not isinstance(item, dict):
            continue
        item_type = item.get("Type")
        name = item.get("Name")
        if not item_type or not name:
            logger.warning(f"Item {template_id} has no Type or Name; skipped")
            continue
        key = f"{item_type}:{str(name).lower()}"
        grouped.setdefault(str(item_type), {}).setdefault(key, item)
    return grouped


def _transfer_images(source_dir: Path, dest_dir: Path, mode: ImageMode) -> int:
    """Copy or move image files, replacing destination files only when older."""
    if not source_dir.is_dir():
        return 0
    dest_dir.mkdir(parents=True, exist_ok=True)
    count = 0
    for old_file in sorted(source_dir.iterdir()):
        if not old_file.is_file():
            continue
        new_file = dest_dir / old_file.name
        if new_file.exists():
            if new_file.stat().st_mtime >= old_file.stat().st_mtime:
                continue
            new_file.unlink()
        if mode is ImageMode.COPY:
            shutil.copy2(old_file, new_file)
        else:
            shutil.move(str(old_file), str(new_file))
        count += 1
    return count


def split_assets_file(
    source_dir: str | Path,
    dest_dir: str | Path,
    image_mode: ImageMode = ImageMode.IGNORE,
) -> SplitResult:
    """Split ``<source_dir>/assets.json`` into ``dest_dir``."""
    source_dir, dest_dir = Path(source_dir), Path(dest_dir)
    assets_file = source_dir / DEFAULT_ASSETS_FILE
    if not assets_file.is_file():
        raise ArtifactError(
            DEFAULT_ASSETS_FILE,
            f"{assets_file} does not exist",
            code=ErrorCode.ARTIFACT_READ_FAILED,
        )
    try:
        document = json.loads(assets_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ArtifactError(
            DEFAULT_ASSETS_FILE,
            f"Cannot read {assets_file}: {exc}",
            code=ErrorCode.ARTIFACT_READ_FAILED,
            original_error=exc,
        ) from exc

    result = SplitResult()
    sections: dict[Path, Any] = {}

    for item_type, items in _group_items(document.get("NamedItems") or {}).items():
        if "/" in item_type:
            result.skipped.append(item_type)
            continue
        sections[dest_dir / "NamedItems" / f"{item_type}.json"] = items

    for section, value in document.items():
        if section == "NamedItems" or not isinstance(value, dict):
            continue
        if "/" in section:
            result.skipped.append(section)
            continue
        sections[dest_dir / f"{section}.json"] = value

    for path, payload in sections.items():
        try:
            write_json_atomic(path, payload)
        except OSError as exc:
            raise ArtifactError(path.name, f"Cannot write {path}: {exc}", original_error=exc) from exc
        logger.debug(f"Saved {path}")
        result.files.append(path)

    for name in result.skipped:
        logger.warning(f"Skipped {name}: names containing '/' cannot be file names")

    if image_mode is not ImageMode.IGNORE:
        result.images = _transfer_images(
            source_dir / DEFAULT_IMAGES_DIR, dest_dir / DEFAULT_IMAGES_DIR, image_mode
        )

    logger.info(f"Split {assets_file} into {len(result.files)} files ({result.images} images)")
    return result
