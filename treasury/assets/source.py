"""Asset sources.

The pipeline needs four things from wherever the assets live: the file
index, a membership test, per-asset loading and image loading. Loading
raises AssetLoadError for a bad asset and never brings the run down.

Two implementations ship with Treasury:

- InMemoryAssetSource: records held in a dict (embedding, tests)
- JsonDumpAssetSource: a directory of pre-decoded JSON dumps, one file
  per package, as produced by common asset viewers
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from treasury.assets.records import AssetRecord
from treasury.constants import ASSET_EXTENSIONS, LOCALIZATION_DIR
from treasury.types.errors import AssetLoadError, ErrorCode
from treasury.utils.helpers import CaseInsensitiveDict, file_stem, strip_extension
from treasury.utils.logger import logger


@runtime_checkable
class AssetSource(Protocol):
    """What the pipeline consumes from the asset store."""

    def file_index(self) -> Iterable[str]:
        """All asset paths in the store (with their extensions)."""
        ...

    def has_path(self, path: str) -> bool:
        ...

    def load(self, path: str) -> AssetRecord:
        """Load one asset. Raises AssetLoadError on failure."""
        ...

    def load_image(self, path: str) -> bytes:
        """Load an image asset as encoded PNG bytes. Raises AssetLoadError."""
        ...


def select_export(exports: list[Mapping[str, Any]], package_path: str) -> Mapping[str, Any] | None:
    """Pick the export named like the package, or its ``_C`` class variant."""
    stem = file_stem(package_path).casefold()
    for wanted in (stem, f"{stem}_c"):
        for export in exports:
            if str(export.get("Name", "")).casefold() == wanted:
                return export
    return None


class InMemoryAssetSource:
    """Asset source backed by dicts. Paths are matched case-insensitively.

    ``assets`` maps index paths to records (or to exceptions, which
    ``load`` raises, to simulate poisoned assets). Tables referenced by
    row handles can be registered under their extensionless path.
    """

    def __init__(
        self,
        assets: Mapping[str, AssetRecord | Exception] | None = None,
        images: Mapping[str, bytes] | None = None,
    ) -> None:
        self._assets: CaseInsensitiveDict[AssetRecord | Exception] = CaseInsensitiveDict(assets or {})
        self._images: CaseInsensitiveDict[bytes] = CaseInsensitiveDict(images or {})
        self._lock = threading.Lock()
        self.load_counts: CaseInsensitiveDict[int] = CaseInsensitiveDict()

    def add(self, path: str, record: AssetRecord | Exception) -> None:
        self._assets[path] = record

    def add_image(self, path: str, data: bytes) -> None:
        self._images[path] = data

    def file_index(self) -> Iterable[str]:
        return list(self._assets)

    def has_path(self, path: str) -> bool:
        return self._resolve(path) is not None

    def _resolve(self, path: str) -> str | None:
        if path in self._assets:
            return path
        base = strip_extension(path)
        for candidate in (base, *(base + ext for ext in ASSET_EXTENSIONS)):
            if candidate in self._assets:
                return candidate
        return None

    def load(self, path: str) -> AssetRecord:
        key = self._resolve(path)
        if key is None:
            raise AssetLoadError(path, code=ErrorCode.ASSET_NOT_FOUND)
        with self._lock:
            self.load_counts[key] = self.load_counts.get(key, 0) + 1
        entry = self._assets[key]
        if isinstance(entry, Exception):
            if isinstance(entry, AssetLoadError):
                raise entry
            raise AssetLoadError(path, original_error=entry) from entry
        return entry

    def load_image(self, path: str) -> bytes:
        for candidate in (path, strip_extension(path)):
            if candidate in self._images:
                return self._images[candidate]
        raise AssetLoadError(path, code=ErrorCode.IMAGE_LOAD_FAILED)


class JsonDumpAssetSource:
    """Asset source over a directory of JSON dumps.

    Layout: ``<root>/Some/Dir/Name.json`` stands for the package
    ``Some/Dir/Name.uasset``. A dump holds either one export object or a
    list of exports; each export looks like
    ``{"Name": ..., "Type": ..., "Properties": {...}, "Rows": {...}}``.

    With a ``language`` set, texts are translated through
    ``<root>/Localization/<language>.json`` (namespace -> key -> text, the
    layout asset viewers use when exporting a locres file). Without one,
    or when that file is missing, the dumped LocalizedString is used.

    Object paths such as ``/Game/Items/Foo.Foo`` are resolved by dropping
    the leading slash and the ``.Object`` suffix. Images are PNG files at
    the same relative location (``Some/Dir/T_Icon.png``).
    """

    def __init__(
        self, root: str | Path, index_extension: str = ".uasset", language: str | None = None
    ) -> None:
        self.root = Path(root)
        self.index_extension = index_extension
        self.language = language
        self._index: CaseInsensitiveDict[Path] | None = None
        self._index_lock = threading.Lock()
        self._localization: dict[str, dict[str, str]] | None = None
        self._localization_loaded = False

    def _build_index(self) -> CaseInsensitiveDict[Path]:
        if self._index is not None:
            return self._index
        with self._index_lock:
            if self._index is None:
                index: CaseInsensitiveDict[Path] = CaseInsensitiveDict()
                for dump in sorted(self.root.rglob("*.json")):
                    relative = dump.relative_to(self.root)
                    if relative.parts[0] == LOCALIZATION_DIR:
                        continue
                    relative = relative.with_suffix(self.index_extension)
                    index[relative.as_posix()] = dump
                logger.debug(f"Indexed {len(index)} asset dumps under {self.root}")
                self._index = index
            return self._index

    def file_index(self) -> Iterable[str]:
        return list(self._build_index())

    @staticmethod
    def _normalize(path: str) -> str:
        path = path.replace("\\", "/").lstrip("/")
        # "/Game/Foo/Bar.Bar" object paths carry the object name after a dot
        head, _, tail = path.rpartition("/")
        if tail.count(".") == 1:
            name, suffix = tail.split(".")
            if suffix.casefold() == name.casefold():
                tail = name
        return f"{head}/{tail}" if head else tail

    def _dump_for(self, path: str) -> Path | None:
        index = self._build_index()
        normalized = self._normalize(path)
        base = strip_extension(normalized)
        for candidate in (normalized, base + self.index_extension):
            if candidate in index:
                return index[candidate]
        return None

    def has_path(self, path: str) -> bool:
        return self._dump_for(path) is not None

    def localization(self) -> dict[str, dict[str, str]] | None:
        """The translation table for ``language``, read once (None if unavailable)."""
        if self._localization_loaded:
            return self._localization
        with self._index_lock:
            if not self._localization_loaded:
                self._localization = self._read_localization()
                self._localization_loaded = True
            return self._localization

    def _read_localization(self) -> dict[str, dict[str, str]] | None:
        if not self.language:
            return None
        table_file = self.root / LOCALIZATION_DIR / f"{self.language}.json"
        try:
            data = json.loads(table_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning(f"No localization for '{self.language}' at {table_file}; using dumped texts")
            return None
        except (OSError, ValueError) as exc:
            logger.warning(f"Unreadable localization {table_file}: {exc}; using dumped texts")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Localization {table_file} is not a JSON object; using dumped texts")
            return None
        table = {ns: keys for ns, keys in data.items() if isinstance(keys, dict)}
        logger.debug(f"Loaded {sum(len(k) for k in table.values())} localized texts for '{self.language}'")
        return table

    def load(self, path: str) -> AssetRecord:
        dump = self._dump_for(path)
        if dump is None:
            raise AssetLoadError(path, code=ErrorCode.ASSET_NOT_FOUND)
        try:
            data = json.loads(dump.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise AssetLoadError(path, code=ErrorCode.ASSET_PARSE_FAILED, original_error=exc) from exc

        exports = data if isinstance(data, list) else [data]
        export = select_export([e for e in exports if isinstance(e, Mapping)], path)
        if export is None:
            raise AssetLoadError(
                path,
                message=f"No export named like the package in {path}",
                code=ErrorCode.ASSET_PARSE_FAILED,
            )
        try:
            return AssetRecord.from_dict(export, self.localization())
        except (TypeError, ValueError, AttributeError) as exc:
            raise AssetLoadError(
                path,
                message=f"Malformed export in {path}: {exc}",
                code=ErrorCode.ASSET_PARSE_FAILED,
                original_error=exc,
            ) from exc

    def load_image(self, path: str) -> bytes:
        base = strip_extension(self._normalize(path))
        image = self.root / f"{base}.png"
        try:
            return image.read_bytes()
        except OSError as exc:
            raise AssetLoadError(path, code=ErrorCode.IMAGE_LOAD_FAILED, original_error=exc) from exc
