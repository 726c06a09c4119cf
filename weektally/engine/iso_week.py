"""ISO-8601 week arithmetic. The only place week identity is computed.

A week runs Monday..Sunday and belongs to the year its Thursday falls in.
Week 1 is the week holding the year's first Thursday, so Dec 29-31 can land
in week 1 of the next year and Jan 1-3 in week 52/53 of the previous one.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from weektally.models.errors import ValidationError

_MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def thursday_of(day: date) -> date:
    """Thursday of the Monday-based week containing `day`."""
    return day + timedelta(days=4 - day.isoweekday())


def first_thursday(year: int) -> date:
    """First Thursday on or after Jan 1 of `year`."""
    jan1 = date(year, 1, 1)
    return jan1 + timedelta(days=(3 - jan1.weekday()) % 7)


def week_of(day: date) -> tuple[int, int]:
    """Return (iso_year, iso_week) for a date."""
    thursday = thursday_of(day)
    iso_year = thursday.year
    offset = (thursday - first_thursday(iso_year)).days
    return iso_year, math.ceil((offset + 1) / 7)


def weeks_in_year(iso_year: int) -> int:
    # Dec 28 is always in the last ISO week of its year
    return week_of(date(iso_year, 12, 28))[1]


def week_bounds(iso_year: int, iso_week: int) -> tuple[date, date]:
    """(Monday, Sunday) of an ISO week. Raises ValidationError on a bad week."""
    if not 1 <= iso_week <= weeks_in_year(iso_year):
        raise ValidationError(f"ISO year {iso_year} has no week {iso_week}")
    thursday = first_thursday(iso_year) + timedelta(weeks=iso_week - 1)
    try:
        return thursday - timedelta(days=3), thursday + timedelta(days=3)
    except OverflowError as exc:
        raise ValidationError(f"week {iso_year}-W{iso_week:02d} runs past the last representable date") from exc


def week_dates(iso_year: int, iso_week: int) -> list[date]:
    monday, _ = week_bounds(iso_year, iso_week)
    return [monday + timedelta(days=i) for i in range(7)]


def date_range_label(iso_year: int, iso_week: int) -> str:
    """'Dec 30 - Jan 5' style label for the week's Monday..Sunday span."""
    monday, sunday = week_bounds(iso_year, iso_week)
    return (
        f"{_MONTH_ABBR[monday.month - 1]} {monday.day} - "
        f"{_MONTH_ABBR[sunday.month - 1]} {sunday.day}"
    )
