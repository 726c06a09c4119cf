"""Tests for ISO-8601 week arithmetic."""

import pytest
from datetime import date, timedelta

from weektally.engine.iso_week import (
    date_range_label,
    first_thursday,
    week_bounds,
    week_dates,
    week_of,
    weeks_in_year,
)
from weektally.models.errors import ValidationError


class TestWeekOf:
    @pytest.mark.parametrize("day, expected", [
        (date(2023, 1, 1), (2022, 52)),
        (date(2024, 12, 30), (2025, 1)),
        (date(2025, 1, 6), (2025, 2)),
        (date(2020, 12, 31), (2020, 53)),
        (date(2021, 1, 3), (2020, 53)),
        (date(2021, 1, 4), (2021, 1)),
        (date(2024, 1, 1), (2024, 1)),
        (date(2026, 1, 1), (2026, 1)),
    ])
    def test_reference_values(self, day, expected):
        assert week_of(day) == expected

    def test_matches_isocalendar_over_multiple_years(self):
        day = date(2015, 1, 1)
        end = date(2032, 12, 31)
        while day <= end:
            iso = day.isocalendar()
            assert week_of(day) == (iso[0], iso[1]), day
            day += timedelta(days=1)

    def test_monday_to_sunday_share_a_week(self):
        monday = date(2024, 3, 4)
        assert {week_of(monday + timedelta(days=i)) for i in range(7)} == {(2024, 10)}


class TestWeekHelpers:
    def test_first_thursday(self):
        assert first_thursday(2024) == date(2024, 1, 4)
        assert first_thursday(2026) == date(2026, 1, 1)

    def test_weeks_in_year(self):
        assert weeks_in_year(2020) == 53
        assert weeks_in_year(2021) == 52
        assert weeks_in_year(2026) == 53

    def test_week_bounds(self):
        assert week_bounds(2025, 1) == (date(2024, 12, 30), date(2025, 1, 5))
        assert week_bounds(2020, 53) == (date(2020, 12, 28), date(2021, 1, 3))

    def test_last_week_of_9999_is_not_representable(self):
        """The week holding 9999-12-31 would end in year 10000."""
        assert weeks_in_year(9999) == 52
        assert week_bounds(9999, 51) == (date(9999, 12, 20), date(9999, 12, 26))
        with pytest.raises(ValidationError):
            week_bounds(9999, 52)
        with pytest.raises(ValidationError):
            week_dates(9999, 52)

    @pytest.mark.parametrize("year, week", [(2021, 53), (2024, 0), (2024, 54)])
    def test_week_bounds_rejects_missing_week(self, year, week):
        with pytest.raises(ValidationError):
            week_bounds(year, week)

    def test_week_dates_are_monday_through_sunday(self):
        days = week_dates(2024, 10)
        assert len(days) == 7
        assert days[0] == date(2024, 3, 4)
        assert days[-1] == date(2024, 3, 10)
        assert [d.weekday() for d in days] == list(range(7))

    def test_date_range_label_across_year_boundary(self):
        assert date_range_label(2025, 1) == "Dec 30 - Jan 5"
        assert date_range_label(2024, 10) == "Mar 4 - Mar 10"
