#
#  pipeline.py
#

"""
Run the whole analysis: load the three sources, reshape the time series, key and join the density table, and
compute the correlation at every monthly snapshot.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

import pandas as pd
import structlog

from covid_density import keys, loader, merge
from covid_density.config import PipelineConfig
from covid_density.correlation import (
    CorrelationSample,
    correlate_snapshots,
    correlations_to_table,
    monthly_snapshots,
)
from covid_density.reshape import wide_to_long

log = structlog.get_logger()

MERGED_FILE = "merged.csv"
CORRELATIONS_FILE = "correlations.csv"


@dataclass(frozen=True)
class PipelineResult:
    merged: pd.DataFrame
    correlations: List[CorrelationSample]

    @property
    def correlations_table(self) -> pd.DataFrame:
        return correlations_to_table(self.correlations)


def load_sources(conf: PipelineConfig) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    tb_cases = loader.load_cases(conf.source_a_location, cache_dir=conf.cache_dir)
    tb_deaths = loader.load_deaths(conf.source_b_location, cache_dir=conf.cache_dir)
    tb_density = loader.load_density(
        conf.source_c_location,
        state_column=conf.density_state_column,
        county_column=conf.density_county_column,
        value_column=conf.density_value_column,
        skip_rows=conf.density_skip_rows,
        cache_dir=conf.cache_dir,
    )
    return tb_cases, tb_deaths, tb_density


def build_merged(
    tb_cases_wide: pd.DataFrame, tb_deaths_wide: pd.DataFrame, tb_density_raw: pd.DataFrame
) -> pd.DataFrame:
    """Raw tables -> merged records."""
    tb_cases = wide_to_long(tb_cases_wide, "cases")
    tb_deaths = wide_to_long(tb_deaths_wide, "deaths")
    tb_density = keys.add_combined_key(tb_density_raw)
    return merge.build_merged_table(tb_cases, tb_deaths, tb_density)


def run(conf: PipelineConfig) -> PipelineResult:
    """Run the pipeline. Any fatal error propagates, and nothing is returned."""
    log.info("pipeline.start", snapshot_start=str(conf.snapshot_start), snapshot_end=str(conf.snapshot_end))

    tb_merged = build_merged(*load_sources(conf))

    dates = monthly_snapshots(conf.snapshot_start, conf.snapshot_end)
    samples = correlate_snapshots(tb_merged, dates)

    log.info("pipeline.done", merged_rows=len(tb_merged), snapshots=len(samples))
    return PipelineResult(merged=tb_merged, correlations=samples)


def save(result: PipelineResult, output_dir: Union[str, Path]) -> List[Path]:
    """Write the merged records and the correlations as CSV files, and return their paths.

    Both files are first written next to their destination with a `.tmp` suffix, and only moved into place once
    both writes have succeeded. If any write fails, no output file is left behind.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    merged_path = output_dir / MERGED_FILE
    correlations_path = output_dir / CORRELATIONS_FILE
    tmp_merged_path = output_dir / (MERGED_FILE + ".tmp")
    tmp_correlations_path = output_dir / (CORRELATIONS_FILE + ".tmp")
    try:
        result.merged.to_csv(tmp_merged_path, index=False, date_format="%Y-%m-%d")
        result.correlations_table.to_csv(tmp_correlations_path, index=False, date_format="%Y-%m-%d")
        os.replace(tmp_merged_path, merged_path)
        os.replace(tmp_correlations_path, correlations_path)
    finally:
        tmp_merged_path.unlink(missing_ok=True)
        tmp_correlations_path.unlink(missing_ok=True)

    log.info("pipeline.saved", output_dir=str(output_dir))
    return [merged_path, correlations_path]
