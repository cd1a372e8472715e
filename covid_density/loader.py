"""Load the three raw sources into typed tables."""

from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import pandas as pd
import structlog

from covid_density import files
from covid_density.exceptions import SchemaMismatch, SourceUnavailable

log = structlog.get_logger()

# Columns that must exist in the wide time series
COVID_KEY_COLUMNS = ["Admin2", "Province_State", "Country_Region", "Combined_Key"]
CASES_REQUIRED_COLUMNS = COVID_KEY_COLUMNS
DEATHS_REQUIRED_COLUMNS = COVID_KEY_COLUMNS + ["Population"]

# Columns of the density table after loading
DENSITY_COLUMNS = ["state", "county", "density_per_sq_mile"]


def check_required_columns(df: pd.DataFrame, required: Sequence[str], source: str) -> None:
    """Check that none of the required columns is missing."""
    missing_cols = [col for col in required if col not in df.columns]
    if missing_cols:
        raise SchemaMismatch(f"Column(s) missing in {source}: {missing_cols}")


def read_csv(location: Union[str, Path], cache_dir: Optional[Union[str, Path]] = None, **kwargs: Any) -> pd.DataFrame:
    """Read a delimited file from a local path or URL."""
    path = files.fetch(location, cache_dir=cache_dir)
    try:
        df = pd.read_csv(path, **kwargs)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
        raise SourceUnavailable(f"Could not read {location}: {e}") from e

    log.info("loader.read", location=str(location), rows=len(df), columns=len(df.columns))
    return df


def load_cases(location: Union[str, Path], cache_dir: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """Load the wide cases time series."""
    df = read_csv(location, cache_dir=cache_dir, dtype={"Combined_Key": str, "Admin2": str})
    check_required_columns(df, CASES_REQUIRED_COLUMNS, str(location))
    return df


def load_deaths(location: Union[str, Path], cache_dir: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """Load the wide deaths time series, which also carries the population of each county."""
    df = read_csv(location, cache_dir=cache_dir, dtype={"Combined_Key": str, "Admin2": str})
    check_required_columns(df, DEATHS_REQUIRED_COLUMNS, str(location))
    df["Population"] = _to_numeric(df["Population"], "Population", str(location), dtype="Int64")
    return df


def load_density(
    location: Union[str, Path],
    state_column: str,
    county_column: str,
    value_column: str,
    skip_rows: Optional[List[int]] = None,
    cache_dir: Optional[Union[str, Path]] = None,
) -> pd.DataFrame:
    """Load the density table, keeping only the state and county labels and the density per square mile.

    The output has columns `state`, `county` and `density_per_sq_mile` (float).
    """
    df = read_csv(
        location,
        cache_dir=cache_dir,
        skiprows=skip_rows or None,
        dtype={state_column: str, county_column: str},
        thousands=",",
        encoding_errors="replace",
    )
    check_required_columns(df, [state_column, county_column, value_column], str(location))

    df = df.rename(
        columns={
            state_column: "state",
            county_column: "county",
            value_column: "density_per_sq_mile",
        }
    )[DENSITY_COLUMNS]
    df["density_per_sq_mile"] = _to_numeric(df["density_per_sq_mile"], value_column, str(location), dtype=float)

    return df


def _to_numeric(s: pd.Series, column: str, source: str, dtype: Any) -> pd.Series:
    """Cast a column to a non-negative numeric `dtype`. Missing values are kept."""
    try:
        s = pd.to_numeric(s).astype(dtype)
    except (ValueError, TypeError) as e:
        raise SchemaMismatch(f"Column {column} in {source} is not {dtype}: {e}") from e

    negative = s < 0
    if negative.any():
        raise SchemaMismatch(f"Column {column} in {source} has negative values: {s[negative].tolist()[:10]}")

    return s
