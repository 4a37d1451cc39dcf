"""
Unit tests for the PriceSeries value type.
Covers statistics, ranking, windowing and time-of-day filtering.
"""

import pytest
import pytz

from ostrom_bridge.exceptions import DataAbsentError, InvalidPriceSeriesError
from ostrom_bridge.models.price_series import PriceSeries

from conftest import make_points, utc


class TestConstruction:
    """Tests for series construction."""

    def test_empty_input_rejected(self):
        """An empty list cannot form a series."""
        with pytest.raises(InvalidPriceSeriesError, match="non-empty"):
            PriceSeries([])

    def test_non_sequence_rejected(self, hourly_points):
        """Generators and other iterables are not accepted."""
        with pytest.raises(InvalidPriceSeriesError, match="requires a list"):
            PriceSeries(point for point in hourly_points)

    def test_input_is_not_resorted(self, hourly_points):
        """The caller's order is kept as-is."""
        reversed_points = list(reversed(hourly_points))
        series = PriceSeries(reversed_points)

        assert series.values[0] == 33
        assert series.values[-1] == 10


class TestStatistics:
    """Tests for average, lowest and highest."""

    def test_increasing_day(self, price_series):
        """24 points priced 10..33."""
        assert price_series.average() == 21.5
        assert price_series.lowest() == 10
        assert price_series.highest() == 33

    @pytest.mark.parametrize("prices", [
        [5.0],
        [3.2, -1.5, 7.9, 0.0],
        [12.5, 12.5, 12.5],
        [-4.0, -2.0, -8.5, -0.1, -3.3],
        [31.7, 28.9, 25.1, 22.4, 27.8, 35.2, 40.1, 38.6],
    ])
    def test_highest_at_least_average_at_least_lowest(self, prices):
        """Ordering between the statistics holds for any non-empty series."""
        series = PriceSeries(make_points(prices, utc(2024, 7, 1)))

        assert series.highest() >= series.average() >= series.lowest()

    def test_statistics_are_memoized(self, price_series):
        """Statistics are computed once per instance."""
        first = price_series.average()
        price_series._values.append(1000.0)

        assert price_series.average() == first


class TestRanking:
    """Tests for n_lowest and n_highest."""

    def test_n_lowest(self, price_series):
        assert price_series.n_lowest(3).values == [10, 11, 12]

    def test_n_highest(self, price_series):
        assert price_series.n_highest(2).values == [33, 32]

    def test_union_covers_series_when_n_exceeds_length(self, price_series, hourly_points):
        """n >= length returns every point from both ends."""
        n = len(hourly_points) + 5
        dates = {point.date for point in price_series.n_lowest(n)} | {point.date for point in price_series.n_highest(n)}

        assert dates == {point.date for point in hourly_points}

    def test_equal_prices_keep_original_order(self):
        """Sorting is stable in both directions."""
        points = make_points([5, 3, 5, 3], utc(2024, 7, 1))
        series = PriceSeries(points)

        lowest_hours = [point.date.hour for point in series.n_lowest(4)]
        highest_hours = [point.date.hour for point in series.n_highest(4)]

        assert lowest_hours == [1, 3, 0, 2]
        assert highest_hours == [0, 2, 1, 3]

    def test_ranking_returns_new_series(self, price_series):
        ranked = price_series.n_lowest(3)

        assert ranked is not price_series
        assert len(price_series) == 24


class TestLookup:
    """Tests for windowing and exact-hour lookups."""

    def test_windowed_starts_at_matching_hour(self, price_series):
        """The window covers `count` points from the matching hour on."""
        window = price_series.windowed(utc(2024, 7, 1, 5), 3)

        assert window.values == [15, 16, 17]

    def test_windowed_truncates_instant_to_hour(self, price_series):
        window = price_series.windowed(utc(2024, 7, 1, 5, 42, 10), 2)

        assert window.values == [15, 16]

    def test_windowed_is_cut_at_end_of_series(self, price_series):
        window = price_series.windowed(utc(2024, 7, 1, 22), 6)

        assert window.values == [32, 33]

    def test_windowed_missing_hour(self, price_series):
        """No interpolation: a missing hour is an error."""
        with pytest.raises(DataAbsentError):
            price_series.windowed(utc(2024, 7, 2, 5), 3)

    def test_price_at(self, price_series):
        point = price_series.price_at(utc(2024, 7, 1, 7, 30))

        assert point is not None
        assert point.net_price == 17

    def test_price_at_missing_hour(self, price_series):
        """Absence is reported as None, not as an error."""
        assert price_series.price_at(utc(2024, 6, 30, 23)) is None
        assert not price_series.includes(utc(2024, 6, 30, 23))


class TestBetween:
    """Tests for time-of-day filtering."""

    def test_same_day_range(self, price_series):
        """Both ends are inclusive."""
        assert price_series.between("02:00", "04:00").values == [12, 13, 14]

    def test_range_crossing_midnight(self, price_series):
        """A start after the end wraps past midnight."""
        assert price_series.between("22:00", "01:00").values == [10, 11, 32, 33]

    def test_local_timezone(self, price_series):
        """Times of day are read in the given timezone (UTC+2 in July)."""
        berlin = pytz.timezone("Europe/Berlin")

        assert price_series.between("02:00", "03:00", berlin).values == [10, 11]

    def test_empty_selection_is_rejected(self, price_series):
        with pytest.raises(InvalidPriceSeriesError):
            price_series.between("10:15", "10:45")

    def test_invalid_time_of_day(self, price_series):
        with pytest.raises(ValueError, match="HH:MM"):
            price_series.between("25:00", "03:00")
