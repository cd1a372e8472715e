import pandas as pd
import pytest

IDENTITY_COLUMNS = [
    "UID",
    "iso2",
    "iso3",
    "code3",
    "FIPS",
    "Admin2",
    "Province_State",
    "Country_Region",
    "Lat",
    "Long_",
    "Combined_Key",
]

COUNTIES = [
    # Admin2, FIPS, Lat, Long_
    ("Adams", 8001.0, 39.87, -104.33),
    ("Boulder", 8013.0, 40.09, -105.35),
    ("Denver", 8031.0, 39.76, -104.88),
    ("Unassigned", 90008.0, None, None),
]


def _wide(values, population=None):
    """Wide time series for the counties above, with values `{county: [value at 6/1/20, value at 7/1/20]}`."""
    records = []
    for i, (county, fips, lat, lon) in enumerate(COUNTIES):
        record = {
            "UID": 84000000 + i,
            "iso2": "US",
            "iso3": "USA",
            "code3": 840,
            "FIPS": fips,
            "Admin2": county,
            "Province_State": "Colorado",
            "Country_Region": "US",
            "Lat": lat,
            "Long_": lon,
            "Combined_Key": f"{county}, Colorado, US",
        }
        if population is not None:
            record["Population"] = population[county]
        record["6/1/20"], record["7/1/20"] = values[county]
        records.append(record)
    return pd.DataFrame(records)


@pytest.fixture
def cases_wide():
    return _wide(
        {
            "Adams": [30, 100],
            "Boulder": [10, 300],
            "Denver": [20, 200],
            "Unassigned": [5, 5],
        }
    )


@pytest.fixture
def deaths_wide():
    return _wide(
        {
            "Adams": [3, 5],
            "Boulder": [1, 5],
            "Denver": [2, 5],
            "Unassigned": [0, 0],
        },
        population={
            "Adams": 1_000_000,
            "Boulder": 1_000_000,
            "Denver": 1_000_000,
            "Unassigned": 0,
        },
    )


@pytest.fixture
def density_raw():
    # state, county, density per square mile, as returned by loader.load_density
    return pd.DataFrame(
        {
            "state": ["Colorado", "Colorado", "Colorado", "Colorado", "Wyoming"],
            "county": ["Colorado", "Adams County", "Boulder County", "Denver County", "Albany County"],
            "density_per_sq_mile": [48.5, 300.0, 100.0, 200.0, 8.5],
        }
    )


@pytest.fixture
def source_files(tmp_path, cases_wide, deaths_wide, density_raw):
    """Sources written to disk the way they are published."""
    cases_path = tmp_path / "time_series_covid19_confirmed_US.csv"
    deaths_path = tmp_path / "time_series_covid19_deaths_US.csv"
    density_path = tmp_path / "density.csv"

    cases_wide.to_csv(cases_path, index=False)
    deaths_wide.to_csv(deaths_path, index=False)

    # Census exports have a second header row with column descriptions
    density = density_raw.rename(
        columns={
            "state": "GEO.display-label",
            "county": "GCT_STUB.display-label",
            "density_per_sq_mile": "SUBHD0401",
        }
    )
    description = pd.DataFrame(
        [{"GEO.display-label": "Geography", "GCT_STUB.display-label": "Target Geo", "SUBHD0401": "Density"}]
    )
    pd.concat([description, density.astype(str)]).to_csv(density_path, index=False)

    return {"cases": cases_path, "deaths": deaths_path, "density": density_path}
