"""Materializes referenced images as PNG files.

Each distinct source image is loaded and written once, under a file
name that is unique within the output directory (``T_Icon.png``, then
``T_Icon-2.png`` for a different asset with the same stem, ...). Items
get the relative path of their file for every wanted image kind.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, TypeVar

from treasury.assets.source import AssetSource
from treasury.config import ImageExportOptions, PerformanceOptions
from treasury.export.cancellation import CancellationToken
from treasury.export.output import ExportedAssets
from treasury.export.unique import ConcurrentUniqueTransformer
from treasury.types.errors import AssetLoadError
from treasury.utils.helpers import file_stem, strip_extension
from treasury.utils.logger import logger as default_logger

T = TypeVar("T")

_NUMBERED = re.compile(r"^(?P<base>.*?)(?:-(?P<n>\d+))?(?P<ext>\.[^.]*)$")


def bump_suffix(file_name: str) -> str:
    """``a.png`` -> ``a-2.png`` -> ``a-3.png``."""
    match = _NUMBERED.match(file_name)
    if match is None:
        return f"{file_name}-2"
    n = int(match["n"]) + 1 if match["n"] else 2
    return f"{match['base']}-{n}{match['ext']}"


def image_file_name(asset_path: str) -> str:
    return f"{file_stem(asset_path)}.png"


class ImageFilesPostExporter:
    def __init__(
        self,
        source: AssetSource,
        options: ImageExportOptions,
        output_root: str | Path,
        performance: PerformanceOptions | None = None,
        logger: Any = None,
    ) -> None:
        self.source = source
        self.options = options
        self.output_root = Path(output_root)
        self.performance = performance or PerformanceOptions()
        self.log = (logger or default_logger).bind(unit=self.name)
        self._lock = threading.Lock()
        self._failed: set[str] = set()
        self._assets_loaded = 0
        self._names = ConcurrentUniqueTransformer(
            transform=image_file_name,
            mutate=bump_suffix,
            input_key=str.casefold,
            output_key=str.casefold,
        )

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def assets_loaded(self) -> int:
        return self._assets_loaded

    @property
    def failed_assets(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._failed)

    @property
    def image_directory(self) -> Path:
        directory = Path(self.options.output_directory)
        return directory if directory.is_absolute() else self.output_root / directory

    def _relative(self, file_name: str) -> str:
        return f"{Path(self.options.output_directory).as_posix()}/{file_name}"

    def _parallel(self, items: Iterable[T], fn: Callable[[T], None], cancellation: CancellationToken) -> None:
        def _guarded(item: T) -> None:
            cancellation.raise_if_cancelled()
            fn(item)

        workers = max(self.performance.max_parallelism, 1)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.name) as pool:
            for future in [pool.submit(_guarded, item) for item in items]:
                future.result()

    def _write_image(self, asset_path: str, file_name: str, directory: Path) -> bool:
        with self._lock:
            self._assets_loaded += 1
        try:
            data = self.source.load_image(asset_path)
        except AssetLoadError as exc:
            self.log.opt(exception=exc).error(f"Failed to load image {asset_path}")
            with self._lock:
                self._failed.add(strip_extension(asset_path))
            return False
        try:
            (directory / file_name).write_bytes(data)
        except OSError as exc:
            self.log.opt(exception=exc).error(f"Failed to write image {file_name} for {asset_path}")
            with self._lock:
                self._failed.add(strip_extension(asset_path))
            return False
        return True

    def run(self, exported: ExportedAssets, cancellation: CancellationToken) -> None:
        if not self.options.enabled:
            self.log.info("Image export disabled")
            return

        references = [ref for ref in exported.image_references() if self.options.wants(ref[1])]
        if not references:
            return

        directory = self.image_directory
        directory.mkdir(parents=True, exist_ok=True)

        # Name every distinct source once; later sightings reuse the name.
        pending: dict[str, str] = {}
        names: dict[str, str] = {}
        for _, _, asset_path in references:
            is_new, file_name = self._names.try_transform_if_novel(asset_path)
            names[asset_path.casefold()] = file_name
            if is_new:
                pending[asset_path] = file_name

        written: set[str] = set()
        written_lock = threading.Lock()

        def _materialize(entry: tuple[str, str]) -> None:
            asset_path, file_name = entry
            if self._write_image(asset_path, file_name, directory):
                with written_lock:
                    written.add(asset_path.casefold())

        self._parallel(pending.items(), _materialize, cancellation)

        def _attach(ref) -> None:
            template_id, image_type, asset_path = ref
            folded = asset_path.casefold()
            if folded in written:
                exported.set_image_file(template_id, image_type, self._relative(names[folded]))

        self._parallel(references, _attach, cancellation)
        self.log.info(f"Wrote {len(written)} images to {directory}")
