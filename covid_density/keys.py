"""Build the combined key of the density table, so that it can be joined with the COVID time series.

The COVID tables identify a county as "<County>, <State>, US" (e.g. "Boulder, Colorado, US"), while the density
table labels it "Boulder County" in the state "Colorado".
"""

import pandas as pd
import structlog

log = structlog.get_logger()

COUNTRY = "US"

# Square kilometres in a square mile
SQ_KM_PER_SQ_MILE = 2.58888

# County-designation suffixes, longest first so that "City and Borough" wins over "Borough"
COUNTY_SUFFIXES = (
    " City and Borough",
    " Census Area",
    " Municipality",
    " Borough",
    " Parish",
    " County",
)


def normalize_county_label(label: str) -> str:
    """Remove the county-designation suffix (at most one) and surrounding whitespace."""
    label = label.strip()
    for suffix in COUNTY_SUFFIXES:
        if label.endswith(suffix):
            return label[: -len(suffix)].strip()
    return label


def build_combined_key(county: str, state: str, country: str = COUNTRY) -> str:
    return f"{normalize_county_label(county)}, {state.strip()}, {country}"


def sq_mile_to_sq_km(density_per_sq_mile):
    return density_per_sq_mile / SQ_KM_PER_SQ_MILE


def add_combined_key(df: pd.DataFrame) -> pd.DataFrame:
    """Return a density table with columns `combined_key`, `density_per_sq_mile` and `density_per_sq_km`.

    Input must have columns `state`, `county` and `density_per_sq_mile`. Rows without a county or state label
    cannot be keyed and are left out. If two rows end up with the same key, the first one is kept.
    """
    df = df.dropna(subset=["state", "county"])

    df = df.assign(
        combined_key=[build_combined_key(county, state) for county, state in zip(df["county"], df["state"])],
        density_per_sq_km=sq_mile_to_sq_km(df["density_per_sq_mile"]),
    )

    duplicated = df["combined_key"].duplicated()
    if duplicated.any():
        log.warning(
            "keys.duplicated_keys",
            n_rows=int(duplicated.sum()),
            examples=df.loc[duplicated, "combined_key"].head(5).tolist(),
        )
        df = df.loc[~duplicated]

    log.info("keys.done", rows=len(df))
    return df[["combined_key", "density_per_sq_mile", "density_per_sq_km"]].reset_index(drop=True)
