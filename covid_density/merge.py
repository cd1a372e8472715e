"""Join the COVID time series with the density table and derive per-million rates."""

import pandas as pd
import structlog

log = structlog.get_logger()

# Columns of the merged table, in order
MERGED_COLUMNS = [
    "combined_key",
    "date",
    "population",
    "cases",
    "deaths",
    "density_per_sq_mile",
    "density_per_sq_km",
    "cases_per_million",
    "deaths_per_million",
]


def combine_cases_deaths(tb_cases: pd.DataFrame, tb_deaths: pd.DataFrame) -> pd.DataFrame:
    """Combine long cases and deaths tables into one observation per county and date.

    Output has columns `combined_key`, `date`, `population`, `cases` and `deaths`. Counties or dates present in
    only one of the two tables get nulls in the other half.
    """
    tb_cases = tb_cases[["Combined_Key", "date", "cases"]]
    tb_deaths = tb_deaths[["Combined_Key", "date", "Population", "deaths"]]

    tb = pd.merge(tb_cases, tb_deaths, on=["Combined_Key", "date"], how="outer", validate="one_to_one")
    tb = tb.rename(columns={"Combined_Key": "combined_key", "Population": "population"})

    return tb[["combined_key", "date", "population", "cases", "deaths"]]


def join_density(tb_obs: pd.DataFrame, tb_density: pd.DataFrame) -> pd.DataFrame:
    """Annotate every observation whose key is in the density table with that key's density.

    Observations whose key has no density counterpart are left out, and so are density rows that match no
    observation. Unmatched keys are only logged.
    """
    obs_keys = set(tb_obs["combined_key"].dropna())
    density_keys = set(tb_density["combined_key"])
    log.info(
        "merge.unmatched_keys",
        covid_keys_without_density=len(obs_keys - density_keys),
        density_keys_without_covid=len(density_keys - obs_keys),
        matched_keys=len(obs_keys & density_keys),
    )

    tb = pd.merge(tb_obs, tb_density, on="combined_key", how="inner", validate="many_to_one")

    log.info("merge.joined", rows=len(tb))
    return tb


def add_per_million(tb: pd.DataFrame) -> pd.DataFrame:
    """Add `cases_per_million` and `deaths_per_million`. They are null where population is zero or missing."""
    population = tb["population"].astype("Float64").replace(0, pd.NA)
    return tb.assign(
        cases_per_million=tb["cases"].astype("Float64") * 1_000_000 / population,
        deaths_per_million=tb["deaths"].astype("Float64") * 1_000_000 / population,
    )


def drop_incomplete_rows(tb: pd.DataFrame) -> pd.DataFrame:
    """Drop rows with a null in any column. The number of dropped rows is logged."""
    incomplete = tb.isna().any(axis=1)
    n_dropped = int(incomplete.sum())
    log.info(
        "merge.drop_incomplete",
        n_dropped=n_dropped,
        share_dropped=round(n_dropped / len(tb), 4) if len(tb) else 0.0,
    )
    return tb.loc[~incomplete].reset_index(drop=True)


def set_dtypes(tb: pd.DataFrame) -> pd.DataFrame:
    return tb.astype(
        {
            "combined_key": str,
            "population": "int64",
            "cases": "int64",
            "deaths": "int64",
            "density_per_sq_mile": "float64",
            "density_per_sq_km": "float64",
            "cases_per_million": "float64",
            "deaths_per_million": "float64",
        }
    )


def build_merged_table(tb_cases: pd.DataFrame, tb_deaths: pd.DataFrame, tb_density: pd.DataFrame) -> pd.DataFrame:
    """Build the table of merged records from the long cases and deaths tables and the keyed density table."""
    tb = combine_cases_deaths(tb_cases, tb_deaths)
    tb = join_density(tb, tb_density)
    tb = add_per_million(tb)
    tb = drop_incomplete_rows(tb[MERGED_COLUMNS])
    tb = set_dtypes(tb)
    return tb.sort_values(["combined_key", "date"], ignore_index=True)
