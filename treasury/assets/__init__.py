"""Asset store access: decoded records, sources and provisioning."""

from treasury.assets.records import (
    AssetRecord,
    CurveInterpMode,
    ItemQuantityPair,
    RowHandle,
    SimpleCurve,
    resolve_object_path,
    resolve_text,
)
from treasury.assets.source import (
    AssetSource,
    InMemoryAssetSource,
    JsonDumpAssetSource,
    select_export,
)
from treasury.assets.provisioning import (
    DynamicKey,
    KeyBundle,
    KeyFileProvisioning,
    NoopProvisioning,
    ProvisioningResult,
    ProvisioningService,
    parse_key_file,
)

__all__ = [
    "AssetRecord",
    "AssetSource",
    "CurveInterpMode",
    "DynamicKey",
    "InMemoryAssetSource",
    "ItemQuantityPair",
    "JsonDumpAssetSource",
    "KeyBundle",
    "KeyFileProvisioning",
    "NoopProvisioning",
    "ProvisioningResult",
    "ProvisioningService",
    "RowHandle",
    "SimpleCurve",
    "parse_key_file",
    "resolve_object_path",
    "resolve_text",
    "select_export",
]
