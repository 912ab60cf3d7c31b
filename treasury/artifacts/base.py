"""JSON file artifacts.

An artifact turns (a slice of) the merged data set into one JSON file.
With merge enabled, an existing file at the destination is read first
and the new data is overlaid on it key by key, so a partial run (for
example with ``--only``) does not drop what earlier runs exported.
"""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from treasury.export.cancellation import CancellationToken
from treasury.export.output import ExportedAssets
from treasury.types.errors import ArtifactError, ErrorCode
from treasury.utils.logger import logger as default_logger


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON to a temp file beside ``path``, fsync, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = tempfile.NamedTemporaryFile(
        mode="w",
        suffix=".tmp",
        dir=path.parent,
        delete=False,
        encoding="utf-8",
    )
    try:
        json.dump(payload, fd, indent=2, ensure_ascii=False)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        os.replace(fd.name, path)
    except BaseException:
        fd.close()
        try:
            os.unlink(fd.name)
        except OSError:
            pass
        raise


def overlay(existing: Mapping[str, Any], fresh: Mapping[str, Any]) -> dict[str, Any]:
    """Per-key overlay, case-insensitive: fresh values win, old keys survive."""
    merged = dict(existing)
    folded = {key.casefold(): key for key in merged}
    for key, value in fresh.items():
        old_key = folded.get(key.casefold())
        if old_key is not None and old_key != key:
            del merged[old_key]
        merged[key] = value
        folded[key.casefold()] = key
    return merged


class JsonFileArtifact(ABC):
    """Base for artifacts written as a single JSON document."""

    def __init__(self, path: str | Path, merge: bool = False, logger: Any = None) -> None:
        self.path = Path(path)
        self.merge = merge
        self.log = (logger or default_logger).bind(unit=self.name)

    @property
    def name(self) -> str:
        return self.path.name

    @abstractmethod
    def build(self, exported: ExportedAssets) -> dict[str, Any]:
        """JSON-ready document for this run's data."""

    def merge_documents(self, existing: dict[str, Any], fresh: dict[str, Any]) -> dict[str, Any]:
        """Overlay mapping sections per key; other sections are replaced."""
        merged = dict(existing)
        for section, value in fresh.items():
            old = merged.get(section)
            if isinstance(old, Mapping) and isinstance(value, Mapping):
                merged[section] = overlay(old, value)
            else:
                merged[section] = value
        return merged

    def read_existing(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ArtifactError(
                self.name,
                f"Cannot read existing {self.path} for merging: {exc}",
                code=ErrorCode.ARTIFACT_READ_FAILED,
                original_error=exc,
            ) from exc
        if not isinstance(data, dict):
            raise ArtifactError(
                self.name,
                f"Existing {self.path} is not a JSON object",
                code=ErrorCode.ARTIFACT_READ_FAILED,
            )
        return data

    def generate(self, exported: ExportedAssets, cancellation: CancellationToken) -> Path:
        cancellation.raise_if_cancelled()
        document = self.build(exported)

        if self.merge:
            existing = self.read_existing()
            if existing is not None:
                self.log.info(f"Merging into existing {self.path}")
                document = self.merge_documents(existing, document)

        cancellation.raise_if_cancelled()
        try:
            write_json_atomic(self.path, document)
        except (OSError, TypeError, ValueError) as exc:
            raise ArtifactError(self.name, f"Cannot write {self.path}: {exc}", original_error=exc) from exc
        self.log.info(f"Wrote {self.path}")
        return self.path
