import datetime as dt

import pandas as pd
import pytest

from covid_density import correlation as corr


def _merged(rows):
    """Merged table from (combined_key, date, density_per_sq_km, cases_per_million, deaths_per_million) tuples."""
    tb = pd.DataFrame(
        rows, columns=["combined_key", "date", "density_per_sq_km", "cases_per_million", "deaths_per_million"]
    )
    return tb.astype({"date": "datetime64[ns]"})


class TestMonthlySnapshots:
    def test_full_range(self):
        dates = corr.monthly_snapshots("2020-04-01", "2023-03-01")

        assert len(dates) == 36
        assert dates[0] == dt.date(2020, 4, 1)
        assert dates[-1] == dt.date(2023, 3, 1)
        assert all(d.day == 1 for d in dates)
        assert all(a < b for a, b in zip(dates, dates[1:]))

    def test_year_boundary(self):
        assert corr.monthly_snapshots(dt.date(2020, 11, 1), dt.date(2021, 2, 1)) == [
            dt.date(2020, 11, 1),
            dt.date(2020, 12, 1),
            dt.date(2021, 1, 1),
            dt.date(2021, 2, 1),
        ]

    def test_single_month(self):
        assert corr.monthly_snapshots("2021-05-01", "2021-05-01") == [dt.date(2021, 5, 1)]

    def test_days_are_ignored(self):
        assert corr.monthly_snapshots("2021-05-17", "2021-06-30") == [dt.date(2021, 5, 1), dt.date(2021, 6, 1)]

    def test_empty_when_end_before_start(self):
        assert corr.monthly_snapshots("2021-05-01", "2021-04-01") == []


class TestPearson:
    def test_perfect_positive(self):
        assert corr.pearson([10, 20, 30], [100, 200, 300]) == 1.0

    def test_perfect_negative(self):
        assert corr.pearson([10, 20, 30], [3, 2, 1]) == pytest.approx(-1.0)

    def test_known_value(self):
        assert corr.pearson([1, 2, 3, 4, 5], [2, 4, 5, 4, 5]) == pytest.approx(0.7745966692414834)

    def test_undefined_with_fewer_than_two_pairs(self):
        assert corr.pearson([], []) is None
        assert corr.pearson([1.0], [2.0]) is None

    def test_undefined_with_constant_variable(self):
        assert corr.pearson([1, 2, 3], [5, 5, 5]) is None
        assert corr.pearson([0.1, 0.1, 0.1], [1, 2, 3]) is None

    def test_lengths_must_match(self):
        with pytest.raises(ValueError):
            corr.pearson([1, 2], [1, 2, 3])

    def test_bounded(self):
        r = corr.pearson([0.1, 0.2, 0.3, 0.7], [1.1, 1.2, 1.3, 1.7])
        assert -1.0 <= r <= 1.0


def test_correlate_snapshots_perfect_positive():
    tb = _merged(
        [
            ("A", "2020-06-01", 10.0, 100.0, 1.0),
            ("B", "2020-06-01", 20.0, 200.0, 2.0),
            ("C", "2020-06-01", 30.0, 300.0, 3.0),
        ]
    )
    (sample,) = corr.correlate_snapshots(tb, [dt.date(2020, 6, 1)])

    assert sample.date == dt.date(2020, 6, 1)
    assert sample.cases_correlation == 1.0
    assert sample.deaths_correlation == 1.0
    assert sample.sample_size == 3


def test_correlate_snapshots_slices_by_exact_date():
    tb = _merged(
        [
            ("A", "2020-06-01", 10.0, 100.0, 1.0),
            ("B", "2020-06-01", 20.0, 200.0, 2.0),
            ("A", "2020-06-02", 10.0, 300.0, 1.0),
            ("B", "2020-06-02", 20.0, 100.0, 2.0),
            ("C", "2020-07-01", 30.0, 100.0, 2.0),
        ]
    )
    samples = corr.correlate_snapshots(tb, ["2020-06-01", "2020-07-01", "2020-08-01"])

    assert [s.date for s in samples] == [dt.date(2020, 6, 1), dt.date(2020, 7, 1), dt.date(2020, 8, 1)]
    assert samples[0].cases_correlation == 1.0
    assert samples[0].sample_size == 2

    # fewer than two rows: undefined, not zero and not an error
    assert samples[1].cases_correlation is None
    assert samples[1].deaths_correlation is None
    assert samples[1].sample_size == 1
    assert samples[2].cases_correlation is None
    assert samples[2].sample_size == 0


def test_correlate_snapshots_constant_deaths():
    tb = _merged(
        [
            ("A", "2020-06-01", 10.0, 100.0, 5.0),
            ("B", "2020-06-01", 20.0, 300.0, 5.0),
        ]
    )
    (sample,) = corr.correlate_snapshots(tb, [dt.date(2020, 6, 1)])
    assert sample.cases_correlation == 1.0
    assert sample.deaths_correlation is None


def test_correlate_snapshots_is_deterministic():
    tb = _merged(
        [
            ("A", "2020-06-01", 12.5, 104.0, 1.5),
            ("B", "2020-06-01", 27.1, 91.0, 2.25),
            ("C", "2020-06-01", 3.3, 401.0, 0.75),
            ("D", "2020-06-01", 88.0, 12.0, 9.0),
        ]
    )
    dates = corr.monthly_snapshots("2020-05-01", "2020-07-01")

    assert corr.correlate_snapshots(tb, dates) == corr.correlate_snapshots(tb, dates)


def test_iter_correlations_is_lazy():
    tb = _merged([("A", "2020-06-01", 10.0, 100.0, 1.0)])
    samples = corr.iter_correlations(tb, ["2020-06-01", "2020-07-01"])

    assert next(samples).date == dt.date(2020, 6, 1)
    assert next(samples).date == dt.date(2020, 7, 1)
    with pytest.raises(StopIteration):
        next(samples)


def test_correlations_to_table():
    samples = [
        corr.CorrelationSample(dt.date(2020, 6, 1), 0.5, None, 10),
        corr.CorrelationSample(dt.date(2020, 7, 1), None, -0.25, 1),
    ]
    tb = corr.correlations_to_table(samples)

    assert list(tb.columns) == ["date", "cases_correlation", "deaths_correlation", "sample_size"]
    assert tb["cases_correlation"].dtype.name == "Float64"
    assert tb.loc[0, "cases_correlation"] == 0.5
    assert tb.loc[0, "deaths_correlation"] is pd.NA
    assert tb.loc[1, "cases_correlation"] is pd.NA
    assert tb.loc[1, "date"] == pd.Timestamp("2020-07-01")


def test_correlations_to_table_empty():
    tb = corr.correlations_to_table([])
    assert tb.empty
    assert list(tb.columns) == ["date", "cases_correlation", "deaths_correlation", "sample_size"]
