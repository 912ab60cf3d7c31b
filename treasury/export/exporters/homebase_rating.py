"""Homebase rating requirements (power level -> rating)."""

from __future__ import annotations

from treasury.export.cancellation import CancellationToken
from treasury.export.exporters.base import BaseExporter
from treasury.export.output import AssetOutput
from treasury.export.protocols import ProgressCallback
from treasury.utils.helpers import file_stem

TABLE_NAME = "HomebaseRatingMapping"


class HomebaseRatingExporter(BaseExporter):
    def interested_in_asset(self, path: str) -> bool:
        return path.casefold().endswith(f"{TABLE_NAME.casefold()}.uasset")

    def export_assets(
        self,
        output: AssetOutput,
        cancellation: CancellationToken,
        progress: ProgressCallback | None,
    ) -> None:
        self.report(progress, 0, 1, "Exporting homebase ratings")

        path = next(
            (p for p in self.asset_paths if file_stem(p).casefold() == TABLE_NAME.casefold()),
            None,
        )
        if path is None:
            self.log.error(f"{TABLE_NAME} not found")
            return

        table = self.load_asset(path, cancellation)
        if table is None:
            return

        first_row = next(iter(table.row_map), None)
        curve = table.find_curve(first_row) if first_row is not None else None
        if curve is None:
            self.log.error(f"{TABLE_NAME} has no curve rows")
            return

        ratings = {str(int(time)): int(value) for time, value in curve.keys}
        output.add_homebase_rating_requirements(ratings)
        self.report(progress, 1, 1, "Exported homebase ratings")
