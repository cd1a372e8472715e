#!/usr/bin/env python
#
#  command.py
#

import sys
import time
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

import rich_click as click
import structlog

from covid_density import config, pipeline
from covid_density.correlation import CorrelationSample, monthly_snapshots
from covid_density.exceptions import PipelineError

log = structlog.get_logger()


@click.command(name="covid-density")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with options, e.g. `snapshot_start: 2020-04-01`.",
)
@click.option("--cases", help="Location (path or URL) of the cases time series.")
@click.option("--deaths", help="Location (path or URL) of the deaths time series.")
@click.option("--density", help="Location (path or URL) of the county density table.")
@click.option("--start", help="First snapshot month, `YYYY-MM` or `YYYY-MM-DD`.")
@click.option("--end", help="Last snapshot month, `YYYY-MM` or `YYYY-MM-DD`.")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory where `merged.csv` and `correlations.csv` are written.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the resolved configuration and snapshot dates without loading any data.",
)
def cli(
    config_file: Optional[Path] = None,
    cases: Optional[str] = None,
    deaths: Optional[str] = None,
    density: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    output_dir: Optional[Path] = None,
    dry_run: bool = False,
) -> None:
    """Correlate county population density with COVID-19 case and death rates.

    Cases and deaths per million are computed for every US county, and their correlation with population density
    is tracked at the first day of every month between `--start` and `--end`.

    **Example**: Use a local copy of the density table and a shorter period:

    ```
    $ covid-density --density data/density.csv --start 2020-04 --end 2020-12
    ```
    """
    try:
        conf = config.load_config(
            config_file,
            source_a_location=cases,
            source_b_location=deaths,
            source_c_location=density,
            snapshot_start=start,
            snapshot_end=end,
            output_dir=output_dir,
        )
    except (ValueError, KeyError) as e:
        raise click.BadParameter(str(e)) from e

    if dry_run:
        for name, value in conf.to_dict().items():
            click.echo(f"{name:25s}{value}")
        dates = monthly_snapshots(conf.snapshot_start, conf.snapshot_end)
        click.echo(f"{len(dates)} snapshots: {dates[0]} .. {dates[-1]}")
        return

    try:
        result, time_taken = timed_run(lambda: pipeline.run(conf))
        pipeline.save(result, conf.output_dir)
    except (PipelineError, OSError) as e:
        if config.DEBUG:
            raise
        log.error("pipeline.failed", error_type=type(e).__name__, error=str(e))
        click.secho(f"{type(e).__name__}: {e}", fg="red", err=True)
        sys.exit(1)

    for sample in result.correlations:
        click.echo(format_sample(sample))
    click.echo(f"Wrote {len(result.merged)} merged rows to {conf.output_dir} ({time_taken:.1f}s)")


def timed_run(f: Callable[[], Any]) -> Tuple[Any, float]:
    start_time = time.time()
    result = f()
    return result, time.time() - start_time


def format_sample(sample: CorrelationSample) -> str:
    def fmt(r: Optional[float]) -> str:
        return "undefined" if r is None else f"{r:+.3f}"

    return (
        f"{sample.date}  cases r={fmt(sample.cases_correlation)}  deaths r={fmt(sample.deaths_correlation)}"
        f"  n={sample.sample_size}"
    )


if __name__ == "__main__":
    cli()
