"""Shared error types for Treasury."""

from treasury.types.errors import (
    ArtifactError,
    AssetLoadError,
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    ErrorSeverity,
    ExporterError,
    FailureClass,
    ProvisioningError,
    RecoveryAction,
    RunCancelledError,
    TreasuryError,
)

__all__ = [
    "ArtifactError",
    "AssetLoadError",
    "ConfigurationError",
    "ErrorCode",
    "ErrorContext",
    "ErrorSeverity",
    "ExporterError",
    "FailureClass",
    "ProvisioningError",
    "RecoveryAction",
    "RunCancelledError",
    "TreasuryError",
]
