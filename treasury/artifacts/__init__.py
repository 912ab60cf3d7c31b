"""Artifact generators and the split tool."""

from treasury.artifacts.assets_json import AssetsJsonArtifact
from treasury.artifacts.base import JsonFileArtifact, overlay, write_json_atomic
from treasury.artifacts.schematics_json import SchematicsJsonArtifact, display_name_for
from treasury.artifacts.split import ImageMode, SplitResult, split_assets_file

__all__ = [
    "AssetsJsonArtifact",
    "ImageMode",
    "JsonFileArtifact",
    "SchematicsJsonArtifact",
    "SplitResult",
    "display_name_for",
    "overlay",
    "split_assets_file",
    "write_json_atomic",
]
