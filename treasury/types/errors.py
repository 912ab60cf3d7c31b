"""
Error handling system for Treasury.

Every error raised by the pipeline belongs to one of four failure
classes, which decide how far it propagates:

- FATAL: aborts the run before (or instead of) producing artifacts
- PER_ASSET: one asset path failed; recorded and skipped
- PER_UNIT: an exporter or post-exporter failed outside its per-asset
  handling; logged, its buffer discarded, the run continues
- CANCELLATION: cooperative shutdown; no artifacts, not an error
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from treasury.constants import utcnow


class ErrorCode(IntEnum):
    """Internal error codes for categorization."""

    # Provisioning Errors (1000-1999)
    KEYS_UNAVAILABLE = 1001
    MAPPINGS_UNAVAILABLE = 1002
    PROVISIONING_FAILED = 1003

    # Asset Errors (2000-2999)
    ASSET_NOT_FOUND = 2001
    ASSET_LOAD_FAILED = 2002
    ASSET_PARSE_FAILED = 2003
    IMAGE_LOAD_FAILED = 2004

    # Export Errors (3000-3999)
    EXPORTER_FAILED = 3001
    POST_EXPORTER_FAILED = 3002

    # Configuration Errors (4000-4999)
    INVALID_CONFIG = 4001
    MISSING_CONFIG = 4002

    # Artifact Errors (5000-5999)
    ARTIFACT_WRITE_FAILED = 5001
    ARTIFACT_READ_FAILED = 5002

    # Run Errors (6000-6999)
    RUN_CANCELLED = 6001


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FailureClass(str, Enum):
    """How far an error propagates through a run."""

    FATAL = "fatal"
    PER_ASSET = "per_asset"
    PER_UNIT = "per_unit"
    CANCELLATION = "cancellation"


@dataclass
class RecoveryAction:
    """Suggested action to recover from an error."""

    description: str
    command: str | None = None


@dataclass
class ErrorContext:
    """Context information for an error."""

    operation: str | None = None
    asset_path: str | None = None
    component: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    additional_info: dict[str, Any] = field(default_factory=dict)


class TreasuryError(Exception):
    """Base error class for Treasury."""

    failure_class: FailureClass = FailureClass.FATAL

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        user_message: str,
        severity: str = ErrorSeverity.MEDIUM,
        context: ErrorContext | None = None,
        recovery_actions: list[RecoveryAction] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.severity = severity
        self.user_message = user_message
        self.context = context or ErrorContext()
        self.recovery_actions = recovery_actions or []
        self.original_error = original_error
        self.context.timestamp = utcnow()

    def get_formatted_message(self) -> str:
        """Get a formatted error message for display to users."""
        parts = [
            f"[Error] {self.user_message}",
            f"   Code: {self.code.value}",
        ]

        if self.context.operation:
            parts.append(f"   Operation: {self.context.operation}")
        if self.context.asset_path:
            parts.append(f"   Asset: {self.context.asset_path}")
        if self.context.component:
            parts.append(f"   Component: {self.context.component}")

        if self.recovery_actions:
            parts.append("")
            parts.append("Suggested actions:")
            for i, action in enumerate(self.recovery_actions, 1):
                parts.append(f"   {i}. {action.description}")
                if action.command:
                    parts.append(f"      Run: {action.command}")

        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "name": self.__class__.__name__,
            "code": self.code.value,
            "message": str(self),
            "user_message": self.user_message,
            "severity": self.severity,
            "failure_class": self.failure_class.value,
            "context": {
                "operation": self.context.operation,
                "asset_path": self.context.asset_path,
                "component": self.context.component,
                "timestamp": self.context.timestamp.isoformat(),
                "additional_info": self.context.additional_info,
            },
            "recovery_actions": [
                {"description": a.description, "command": a.command}
                for a in self.recovery_actions
            ],
            "original_error": str(self.original_error) if self.original_error else None,
        }


class ConfigurationError(TreasuryError):
    """Error related to configuration issues."""

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        context: ErrorContext | None = None,
        recovery_actions: list[RecoveryAction] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.INVALID_CONFIG,
            message=message,
            user_message=user_message or "Configuration error occurred.",
            severity=ErrorSeverity.HIGH,
            context=context,
            recovery_actions=recovery_actions,
            original_error=original_error,
        )


class ProvisioningError(TreasuryError):
    """Keys or type mappings could not be obtained; the run cannot start."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROVISIONING_FAILED,
        user_message: str | None = None,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            user_message=user_message or "Could not obtain decryption keys or type mappings.",
            severity=ErrorSeverity.CRITICAL,
            context=context,
            recovery_actions=[
                RecoveryAction("Check that the key file and mappings file exist and are not empty"),
            ],
            original_error=original_error,
        )


class AssetLoadError(TreasuryError):
    """A single asset could not be loaded or parsed."""

    failure_class = FailureClass.PER_ASSET

    def __init__(
        self,
        asset_path: str,
        message: str | None = None,
        code: ErrorCode = ErrorCode.ASSET_LOAD_FAILED,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message or f"Failed to load asset: {asset_path}",
            user_message="Asset could not be loaded.",
            severity=ErrorSeverity.LOW,
            context=ErrorContext(operation="load", asset_path=asset_path),
            original_error=original_error,
        )
        self.asset_path = asset_path


class ExporterError(TreasuryError):
    """An exporter or post-exporter failed outside its per-asset handling."""

    failure_class = FailureClass.PER_UNIT

    def __init__(
        self,
        unit_name: str,
        message: str,
        code: ErrorCode = ErrorCode.EXPORTER_FAILED,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            user_message=f"{unit_name} failed; its output was discarded.",
            severity=ErrorSeverity.MEDIUM,
            context=ErrorContext(operation="export", component=unit_name),
            original_error=original_error,
        )
        self.unit_name = unit_name


class ArtifactError(TreasuryError):
    """An artifact could not be read (for merging) or written."""

    def __init__(
        self,
        artifact_name: str,
        message: str,
        code: ErrorCode = ErrorCode.ARTIFACT_WRITE_FAILED,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            user_message=f"Artifact {artifact_name} could not be generated.",
            severity=ErrorSeverity.HIGH,
            context=ErrorContext(operation="write_artifact", component=artifact_name),
            original_error=original_error,
        )


class RunCancelledError(TreasuryError):
    """The run was cancelled cooperatively."""

    failure_class = FailureClass.CANCELLATION

    def __init__(self, message: str = "Run cancelled") -> None:
        super().__init__(
            code=ErrorCode.RUN_CANCELLED,
            message=message,
            user_message="The export run was cancelled.",
            severity=ErrorSeverity.LOW,
        )
