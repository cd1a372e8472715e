"""Reshape wide time series (one column per date) into long tables (one row per county and date)."""

from typing import List, Sequence, Tuple

import pandas as pd
import structlog

from covid_density.exceptions import SchemaMismatch

log = structlog.get_logger()

# Format of the date headers, e.g. "6/1/20"
DATE_HEADER_FORMAT = "%m/%d/%y"

# Last column of the identity block
KEY_COLUMN = "Combined_Key"

# Columns that follow the key column but still belong to the identity block
EXTRA_IDENTITY_COLUMNS = ("Population",)

# Geographic coordinates, not used in the analysis
COORDINATE_COLUMNS = ("Lat", "Long_")


def split_columns(
    df: pd.DataFrame, extra_identity_columns: Sequence[str] = EXTRA_IDENTITY_COLUMNS
) -> Tuple[List[str], List[str]]:
    """Split the columns of a wide table into the identity block and the date columns."""
    columns = list(df.columns)
    if KEY_COLUMN not in columns:
        raise SchemaMismatch(f"Identity block must end with {KEY_COLUMN}, found columns {columns[:15]}")

    end = columns.index(KEY_COLUMN) + 1
    identity_columns = columns[:end] + [c for c in columns[end:] if c in extra_identity_columns]
    date_columns = [c for c in columns[end:] if c not in extra_identity_columns]
    if not date_columns:
        raise SchemaMismatch("No date columns found after the identity block")

    return identity_columns, date_columns


def parse_date_headers(headers: List[str]) -> pd.DatetimeIndex:
    """Parse month/day/2-digit-year headers. Any header with a different format is a schema change."""
    try:
        dates = pd.DatetimeIndex(pd.to_datetime(pd.Series(headers, dtype=str), format=DATE_HEADER_FORMAT))
    except (ValueError, TypeError) as e:
        raise SchemaMismatch(f"Date header does not follow {DATE_HEADER_FORMAT}: {e}") from e

    # e.g. "6/1/20" and "06/01/20" would give two rows per key and date
    duplicated = dates.duplicated()
    if duplicated.any():
        raise SchemaMismatch(
            f"Date headers refer to the same date more than once: {[h for h, d in zip(headers, duplicated) if d]}"
        )

    return dates


def wide_to_long(
    df_wide: pd.DataFrame,
    value_name: str,
    extra_identity_columns: Sequence[str] = EXTRA_IDENTITY_COLUMNS,
    drop_columns: Sequence[str] = COORDINATE_COLUMNS,
) -> pd.DataFrame:
    """Convert a wide time series into a long table.

    The output has one row per (identity row, date column), so R identity rows and D date columns give R x D
    rows. Identity columns are kept (except geographic coordinates), and two columns are added: `date` (parsed
    from the header) and `value_name` (the cell value, as a nullable integer).

    Parameters
    ----------
    df_wide : pd.DataFrame
        Wide table, with an identity block ending in `Combined_Key`, followed by one column per date.
    value_name : str
        Name of the value column, e.g. "cases" or "deaths".

    Returns
    -------
    pd.DataFrame
        Long table, sorted by key and date.
    """
    identity_columns, date_columns = split_columns(df_wide, extra_identity_columns=extra_identity_columns)
    dates = parse_date_headers(date_columns)

    duplicated = df_wide[KEY_COLUMN].duplicated()
    if duplicated.any():
        raise SchemaMismatch(
            f"{KEY_COLUMN} is not unique in {value_name} table: {sorted(df_wide.loc[duplicated, KEY_COLUMN])[:10]}"
        )

    df_long = df_wide.melt(
        id_vars=identity_columns, value_vars=date_columns, var_name="date", value_name=value_name
    )
    df_long["date"] = df_long["date"].map(dict(zip(date_columns, dates))).astype("datetime64[ns]")
    try:
        df_long[value_name] = pd.to_numeric(df_long[value_name]).astype("Int64")
    except (ValueError, TypeError) as e:
        raise SchemaMismatch(f"Non-integer values in {value_name} table: {e}") from e

    # published cumulative series carry occasional negative corrections, they are kept as they are
    n_negative = int((df_long[value_name] < 0).sum())
    if n_negative:
        log.warning("reshape.negative_values", kind=value_name, n_rows=n_negative)

    df_long = df_long.drop(columns=[c for c in drop_columns if c in df_long.columns])
    df_long = df_long.sort_values([KEY_COLUMN, "date"], ignore_index=True)

    log.info(
        "reshape.done",
        kind=value_name,
        identity_rows=len(df_wide),
        dates=len(date_columns),
        rows=len(df_long),
    )
    return df_long
