"""Key and type-mapping provisioning.

Before any asset can be read the store needs its decryption keys and
the type mappings used to decode unversioned properties. Getting them
is the only step allowed to fail the whole run: the pipeline asks once,
waits a fixed delay, asks again, and gives up with ProvisioningError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from treasury.utils.logger import logger


@dataclass
class DynamicKey:
    """Key for one encrypted container file."""

    pak_filename: str
    pak_guid: str
    key: str


@dataclass
class KeyBundle:
    main_key: str | None = None
    dynamic_keys: list[DynamicKey] = field(default_factory=list)

    @property
    def key_count(self) -> int:
        return len(self.dynamic_keys) + (1 if self.main_key else 0)


@dataclass
class ProvisioningResult:
    """Outcome of one provisioning attempt."""

    ready: bool
    keys: KeyBundle | None = None
    mappings_path: str | None = None
    detail: str = ""

    @classmethod
    def unavailable(cls, detail: str) -> "ProvisioningResult":
        return cls(ready=False, detail=detail)


@runtime_checkable
class ProvisioningService(Protocol):
    def acquire_keys_and_mappings(self) -> ProvisioningResult:
        ...


class NoopProvisioning:
    """For sources that are already decrypted and decoded (e.g. JSON dumps)."""

    def acquire_keys_and_mappings(self) -> ProvisioningResult:
        return ProvisioningResult(ready=True, keys=KeyBundle(), detail="no provisioning required")


def parse_key_file(data: dict) -> KeyBundle:
    """Parse an AES key file: ``{"mainKey": ..., "dynamicKeys": [...]}``."""
    dynamic = [
        DynamicKey(
            pak_filename=str(dk.get("pakFilename", "")),
            pak_guid=str(dk.get("pakGuid", "")),
            key=str(dk["key"]),
        )
        for dk in data.get("dynamicKeys") or []
        if isinstance(dk, dict) and dk.get("key")
    ]
    return KeyBundle(main_key=data.get("mainKey") or None, dynamic_keys=dynamic)


class KeyFileProvisioning:
    """Reads keys from a local key file and checks the mappings file.

    Both files are re-read on every attempt, so a retry picks up a file
    written in the meantime (e.g. by a separate key fetcher).
    """

    def __init__(self, key_file: str | Path, mappings_file: str | Path | None = None) -> None:
        self.key_file = Path(key_file)
        self.mappings_file = Path(mappings_file) if mappings_file else None

    def acquire_keys_and_mappings(self) -> ProvisioningResult:
        try:
            data = json.loads(self.key_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return ProvisioningResult.unavailable(f"Key file not found: {self.key_file}")
        except (OSError, json.JSONDecodeError) as exc:
            return ProvisioningResult.unavailable(f"Key file unreadable: {exc}")

        if not isinstance(data, dict):
            return ProvisioningResult.unavailable(f"Key file is not a JSON object: {self.key_file}")
        if not isinstance(data.get("dynamicKeys") or [], list):
            return ProvisioningResult.unavailable(f"dynamicKeys is not a list in {self.key_file}")

        keys = parse_key_file(data)
        for dk in keys.dynamic_keys:
            logger.debug(f"Found dynamic key for {dk.pak_filename}")

        if self.mappings_file is not None:
            try:
                size = self.mappings_file.stat().st_size
            except OSError:
                return ProvisioningResult.unavailable(f"Mappings file not found: {self.mappings_file}")
            if size == 0:
                return ProvisioningResult.unavailable(f"Mappings file is empty: {self.mappings_file}")

        return ProvisioningResult(
            ready=True,
            keys=keys,
            mappings_path=str(self.mappings_file) if self.mappings_file else None,
            detail=f"{keys.key_count} key(s) loaded",
        )
