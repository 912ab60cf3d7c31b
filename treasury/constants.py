"""Shared constants and helpers for Treasury.

Centralizes the asset-index filter, default artifact file names and
timezone-aware datetime helpers.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime.

    Can be used directly as a ``default_factory`` in dataclass fields.
    """
    return datetime.now(timezone.utc)


# Only these container extensions are offered to exporters.
ASSET_EXTENSIONS: tuple[str, ...] = (".uasset", ".bin")

# Path fragments for content areas no exporter handles (compared casefolded).
EXCLUDED_PATH_FRAGMENTS: tuple[str, ...] = ("/athena/",)

# Default artifact locations, relative to the output directory.
DEFAULT_ASSETS_FILE: str = "assets.json"
DEFAULT_SCHEMATICS_FILE: str = "schematics.json"
DEFAULT_IMAGES_DIR: str = "ExportedImages"
DEFAULT_CONFIG_FILE: str = "treasury.json"

# Directory of per-language text tables inside a dump root.
LOCALIZATION_DIR: str = "Localization"

# Provisioning retries once after this many seconds.
DEFAULT_PROVISIONING_RETRY_DELAY: float = 5.0

# Exit codes returned by run_pipeline via RunResult.exit_code.
EXIT_SUCCESS: int = 0
EXIT_FATAL: int = 1
EXIT_CANCELLED: int = 130
