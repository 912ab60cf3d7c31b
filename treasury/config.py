"""Run configuration.

Options are grouped the same way the config file is:

    {
      "game_files":   {"source_directory": "dumps", "language": "en"},
      "performance":  {"max_parallelism": 4},
      "scope":        {"only": "CardPackExporter,HeroStatExporter", "limit": null, "merge": false},
      "images":       {"output_directory": "ExportedImages",
                       "types": {"SmallPreview": true, "PackImage": false}},
      "artifacts":    {"assets": {"path": "assets.json", "merge": null},
                       "schematics": {"path": "schematics.json"}},
      "provisioning": {"key_file": "aes.json", "mappings_file": "mappings.usmap",
                       "retry_delay_seconds": 5}
    }

Every section and key is optional. Artifact ``merge`` falls back to
``scope.merge`` when unset. Relative artifact and image paths are
resolved against ``output_directory``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from treasury.constants import (
    DEFAULT_ASSETS_FILE,
    DEFAULT_IMAGES_DIR,
    DEFAULT_PROVISIONING_RETRY_DELAY,
    DEFAULT_SCHEMATICS_FILE,
)
from treasury.export.types import ImageType
from treasury.types.errors import ConfigurationError, ErrorContext, RecoveryAction


@dataclass
class GameFileOptions:
    source_directory: str | None = None
    language: str | None = None


@dataclass
class PerformanceOptions:
    max_parallelism: int = 1


@dataclass
class ScopeOptions:
    only: str | None = None
    limit: int | None = None
    merge: bool = False

    @property
    def selected_names(self) -> list[str]:
        """The allow-list, split and trimmed (empty means every exporter)."""
        if not self.only or not self.only.strip():
            return []
        return [name.strip() for name in self.only.split(",") if name.strip()]


def _default_image_types() -> dict[ImageType, bool]:
    return {
        ImageType.SMALL_PREVIEW: True,
        ImageType.LARGE_PREVIEW: True,
        ImageType.ICON: True,
        ImageType.PACK_IMAGE: False,
    }


@dataclass
class ImageExportOptions:
    enabled: bool = True
    output_directory: str = DEFAULT_IMAGES_DIR
    types: dict[ImageType, bool] = field(default_factory=_default_image_types)

    def wants(self, image_type: ImageType) -> bool:
        return self.enabled and self.types.get(image_type, False)


@dataclass
class ExportedFileOptions:
    path: str
    merge: bool | None = None


@dataclass
class ProvisioningOptions:
    key_file: str | None = None
    mappings_file: str | None = None
    retry_delay_seconds: float = DEFAULT_PROVISIONING_RETRY_DELAY


@dataclass
class ExportConfig:
    """Everything a run needs to know, minus its collaborators."""

    output_directory: str = "."
    game_files: GameFileOptions = field(default_factory=GameFileOptions)
    performance: PerformanceOptions = field(default_factory=PerformanceOptions)
    scope: ScopeOptions = field(default_factory=ScopeOptions)
    images: ImageExportOptions = field(default_factory=ImageExportOptions)
    assets_file: ExportedFileOptions = field(
        default_factory=lambda: ExportedFileOptions(DEFAULT_ASSETS_FILE)
    )
    schematics_file: ExportedFileOptions = field(
        default_factory=lambda: ExportedFileOptions(DEFAULT_SCHEMATICS_FILE)
    )
    provisioning: ProvisioningOptions = field(default_factory=ProvisioningOptions)

    def resolve_output(self, path: str) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else Path(self.output_directory) / candidate

    def merge_for(self, options: ExportedFileOptions) -> bool:
        return self.scope.merge if options.merge is None else options.merge

    def with_overrides(
        self,
        *,
        source_directory: str | None = None,
        output_directory: str | None = None,
        only: str | None = None,
        limit: int | None = None,
        merge: bool | None = None,
        max_parallelism: int | None = None,
        images_enabled: bool | None = None,
    ) -> "ExportConfig":
        """Copy with command-line overrides applied (None leaves a value alone)."""
        config = replace(self)
        if source_directory is not None:
            config.game_files = replace(self.game_files, source_directory=source_directory)
        if output_directory is not None:
            config.output_directory = output_directory
        if only is not None or limit is not None or merge is not None:
            config.scope = replace(
                self.scope,
                only=self.scope.only if only is None else only,
                limit=self.scope.limit if limit is None else limit,
                merge=self.scope.merge if merge is None else merge,
            )
        if max_parallelism is not None:
            config.performance = replace(self.performance, max_parallelism=max_parallelism)
        if images_enabled is not None:
            config.images = replace(self.images, enabled=images_enabled)
        config.validate()
        return config

    def validate(self) -> None:
        if self.performance.max_parallelism < 1:
            raise _invalid("performance.max_parallelism must be at least 1")
        if self.scope.limit is not None and self.scope.limit < 0:
            raise _invalid("scope.limit must not be negative")
        if self.provisioning.retry_delay_seconds < 0:
            raise _invalid("provisioning.retry_delay_seconds must not be negative")


def _invalid(message: str, original: Exception | None = None) -> ConfigurationError:
    return ConfigurationError(
        message,
        user_message=f"Invalid configuration: {message}",
        context=ErrorContext(operation="load_config"),
        original_error=original,
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _invalid(f"section '{name}' must be an object")
    return value


def _typed(section: dict[str, Any], key: str, kind: type | tuple[type, ...], default: Any) -> Any:
    if key not in section or section[key] is None:
        return default
    value = section[key]
    if isinstance(value, bool) and kind in (int, float, (int, float)):
        raise _invalid(f"'{key}' must be a number")
    if not isinstance(value, kind):
        raise _invalid(f"'{key}' has the wrong type ({type(value).__name__})")
    return value


def _image_types(raw: Any) -> dict[ImageType, bool]:
    types = _default_image_types()
    if not raw:
        return types
    if not isinstance(raw, dict):
        raise _invalid("images.types must be an object")
    for name, wanted in raw.items():
        try:
            types[ImageType(name)] = bool(wanted)
        except ValueError as exc:
            raise _invalid(f"unknown image type '{name}'", exc) from exc
    return types


def _file_options(raw: dict[str, Any], default_path: str) -> ExportedFileOptions:
    return ExportedFileOptions(
        path=_typed(raw, "path", str, default_path),
        merge=_typed(raw, "merge", bool, None),
    )


def config_from_dict(data: dict[str, Any]) -> ExportConfig:
    """Build and validate an ExportConfig from parsed JSON."""
    if not isinstance(data, dict):
        raise _invalid("configuration root must be an object")

    game = _section(data, "game_files")
    performance = _section(data, "performance")
    scope = _section(data, "scope")
    images = _section(data, "images")
    artifacts = _section(data, "artifacts")
    provisioning = _section(data, "provisioning")

    config = ExportConfig(
        output_directory=_typed(data, "output_directory", str, "."),
        game_files=GameFileOptions(
            source_directory=_typed(game, "source_directory", str, None),
            language=_typed(game, "language", str, None),
        ),
        performance=PerformanceOptions(
            max_parallelism=_typed(performance, "max_parallelism", int, 1),
        ),
        scope=ScopeOptions(
            only=_typed(scope, "only", str, None),
            limit=_typed(scope, "limit", int, None),
            merge=_typed(scope, "merge", bool, False),
        ),
        images=ImageExportOptions(
            enabled=_typed(images, "enabled", bool, True),
            output_directory=_typed(images, "output_directory", str, DEFAULT_IMAGES_DIR),
            types=_image_types(images.get("types")),
        ),
        assets_file=_file_options(
            _section(artifacts, "assets"), DEFAULT_ASSETS_FILE
        ),
        schematics_file=_file_options(
            _section(artifacts, "schematics"), DEFAULT_SCHEMATICS_FILE
        ),
        provisioning=ProvisioningOptions(
            key_file=_typed(provisioning, "key_file", str, None),
            mappings_file=_typed(provisioning, "mappings_file", str, None),
            retry_delay_seconds=float(
                _typed(provisioning, "retry_delay_seconds", (int, float), DEFAULT_PROVISIONING_RETRY_DELAY)
            ),
        ),
    )
    config.validate()
    return config


def load_config(path: str | Path) -> ExportConfig:
    """Read a JSON config file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Config file not found: {path}",
            user_message=f"Config file not found: {path}",
            recovery_actions=[RecoveryAction("Create the file or drop --config to use defaults")],
            original_error=exc,
        ) from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise _invalid(f"cannot read {path}: {exc}", exc) from exc
    return config_from_dict(data)
