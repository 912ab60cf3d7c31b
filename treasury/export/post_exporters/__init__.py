"""Refinement units run over the merged data set."""

from treasury.export.post_exporters.images import (
    ImageFilesPostExporter,
    bump_suffix,
    image_file_name,
)

__all__ = [
    "ImageFilesPostExporter",
    "bump_suffix",
    "image_file_name",
]
