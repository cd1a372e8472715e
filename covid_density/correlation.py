"""Track the correlation between population density and COVID-19 rates over monthly snapshots.

For every snapshot date, the merged table is sliced to the rows of that exact date, and the Pearson correlation
coefficient between density and each rate is computed over the slice. When the slice has fewer than two rows,
or either variable is constant over it, the coefficient is undefined and is reported as `None` (`<NA>` once
converted to a table).
"""

import datetime as dt
from dataclasses import asdict, dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import structlog

log = structlog.get_logger()

DENSITY_COLUMN = "density_per_sq_km"
CASES_COLUMN = "cases_per_million"
DEATHS_COLUMN = "deaths_per_million"

DateLike = Union[str, dt.date]


@dataclass(frozen=True)
class CorrelationSample:
    date: dt.date
    cases_correlation: Optional[float]
    deaths_correlation: Optional[float]
    # number of counties in the date slice
    sample_size: int


def _to_date(value: DateLike) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(str(value))


def monthly_snapshots(start: DateLike, end: DateLike) -> List[dt.date]:
    """First day of every month from the month of `start` to the month of `end`, both included.

    Example:
        ```python
        monthly_snapshots("2020-04-01", "2020-06-01")
        # Returns: [date(2020, 4, 1), date(2020, 5, 1), date(2020, 6, 1)]
        ```
    """
    start = _to_date(start).replace(day=1)
    end = _to_date(end).replace(day=1)

    dates = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        dates.append(dt.date(year, month, 1))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)

    return dates


def pearson(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Pearson correlation coefficient of paired samples, or None if it is undefined.

    It is undefined with fewer than two pairs, or when either variable is constant.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y):
        raise ValueError(f"Samples must have the same length, got {len(x)} and {len(y)}")

    if len(x) < 2 or (x == x[0]).all() or (y == y[0]).all():
        return None

    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt((dx**2).sum() * (dy**2).sum())
    if denominator == 0:
        return None

    r = float((dx * dy).sum() / denominator)
    # rounding can push |r| slightly above 1
    return max(-1.0, min(1.0, r))


def correlate_slice(tb: pd.DataFrame, date: dt.date) -> CorrelationSample:
    """Correlations over the rows of `tb` (already sliced to `date`)."""
    cases_r = pearson(tb[DENSITY_COLUMN], tb[CASES_COLUMN])
    deaths_r = pearson(tb[DENSITY_COLUMN], tb[DEATHS_COLUMN])

    if cases_r is None or deaths_r is None:
        log.warning(
            "correlation.undefined",
            date=str(date),
            sample_size=len(tb),
            reason="too few rows" if len(tb) < 2 else "constant variable",
        )

    return CorrelationSample(date=date, cases_correlation=cases_r, deaths_correlation=deaths_r, sample_size=len(tb))


def iter_correlations(tb: pd.DataFrame, dates: Iterable[DateLike]) -> Iterator[CorrelationSample]:
    """Yield one sample per date, in the order of `dates`. Only one date slice is held at a time."""
    for date in dates:
        date = _to_date(date)
        tb_date = tb.loc[tb["date"] == pd.Timestamp(date)]
        yield correlate_slice(tb_date, date)


def correlate_snapshots(tb: pd.DataFrame, dates: Iterable[DateLike]) -> List[CorrelationSample]:
    samples = list(iter_correlations(tb, dates))
    log.info("correlation.done", snapshots=len(samples))
    return samples


def correlations_to_table(samples: Iterable[CorrelationSample]) -> pd.DataFrame:
    """Tidy table of samples. Undefined coefficients are `<NA>`."""
    tb = pd.DataFrame(
        [asdict(s) for s in samples],
        columns=["date", "cases_correlation", "deaths_correlation", "sample_size"],
    )
    tb["date"] = pd.to_datetime(tb["date"]).astype("datetime64[ns]")
    return tb.astype(
        {
            "cases_correlation": "Float64",
            "deaths_correlation": "Float64",
            "sample_size": "int64",
        }
    )
