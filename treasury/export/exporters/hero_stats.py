"""Hero stat curves, sampled per tier."""

from __future__ import annotations

import re

from treasury.export.cancellation import CancellationToken
from treasury.export.exporters.base import BaseExporter
from treasury.export.output import AssetOutput
from treasury.export.protocols import ProgressCallback
from treasury.export.types import HeroStat, HeroStatTable

# e.g. "Default.NINJA_SHIELDS_SR_T05.FortHealthSet.MaxHealth"
HERO_STAT_ROW = re.compile(
    r"^\w+\.([A-Z]+)_([A-Z]+)_(C|UC|R|VR|SR|UR)_T(\d+)\.(.+)$",
    re.IGNORECASE | re.DOTALL,
)


def sample_levels(tier: int) -> range:
    """Levels sampled for a tier: start at (tier-1)*10, 20 steps for tier 5, else 10, end inclusive."""
    start = (tier - 1) * 10
    steps = 20 if tier == 5 else 10
    return range(start, start + steps + 1)


class HeroStatExporter(BaseExporter):
    def interested_in_asset(self, path: str) -> bool:
        return path.casefold().endswith("attributesheroscaling.uasset")

    def export_assets(
        self,
        output: AssetOutput,
        cancellation: CancellationToken,
        progress: ProgressCallback | None,
    ) -> None:
        if not self.asset_paths:
            self.log.error("Hero stat curve table (AttributesHeroScaling) not found")
            return

        path = self.asset_paths[0]
        table = self.load_asset(path, cancellation)
        if table is None:
            return

        rows = list(table.row_map)
        self.report(progress, 0, len(rows), "Exporting hero stats")

        stat_table = HeroStatTable()
        for done, row_name in enumerate(rows, 1):
            cancellation.raise_if_cancelled()
            match = HERO_STAT_ROW.match(row_name)
            if match is None:
                self.log.warning(f"Can't parse hero stat: {row_name}")
                continue

            type_key = f"{match[1]}_{match[2]}"
            tier_key = f"{match[3]}_T0{match[4]}"
            stat_key = match[5]
            tier = int(match[4])

            curve = table.find_curve(row_name)
            levels = sample_levels(tier)
            values = [curve.eval(level) if curve is not None else 0.0 for level in levels]

            tiers = stat_table.types.setdefault(type_key, {})
            tiers.setdefault(tier_key, {})[stat_key] = HeroStat(first_level=levels.start, values=values)
            self.report(progress, done, len(rows), row_name)

        output.add_hero_stats(stat_table)
        self.log.info(f"Exported hero stats for {len(stat_table.types)} hero types")
