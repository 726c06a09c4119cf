"""Daily and weekly records plus their persisted document form.

DailyRecord is owned by the SlotStore, WeeklyRecord by the WeekAggregator.
Both derive their totals; nothing outside this module writes `total_minutes`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from weektally.models.bucket import BucketId
from weektally.models.errors import ValidationError

# The ISO week holding this Sunday is the last one whose days all fit in a date.
LAST_TRACKABLE_DAY = date(9999, 12, 26)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def format_minutes(minutes: int) -> str:
    """Render a minute count as '<H>H <M>M' (75 -> '1H 15M')."""
    hours, mins = divmod(int(minutes), 60)
    return f"{hours}H {mins}M"


def parse_iso_date(raw: str) -> date:
    """Parse a strict YYYY-MM-DD string. Raises ValidationError."""
    if not isinstance(raw, str) or len(raw) != 10 or raw[4] != "-" or raw[7] != "-":
        raise ValidationError(f"invalid date (expected YYYY-MM-DD): {raw!r}")
    try:
        day = date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"invalid date {raw!r}: {exc}") from exc
    return check_trackable(day)


def check_trackable(day: date) -> date:
    """Return `day`, or raise ValidationError if its ISO week runs past year 9999."""
    if day > LAST_TRACKABLE_DAY:
        raise ValidationError(f"date {day.isoformat()} is past the last trackable day {LAST_TRACKABLE_DAY.isoformat()}")
    return day


def empty_buckets() -> dict[BucketId, int]:
    return {bucket: 0 for bucket in BucketId}


@dataclass
class DailyRecord:
    day: date
    bucket_minutes: dict[BucketId, int] = field(default_factory=empty_buckets)
    notes: str = ""
    day_name: str = ""          # cache, always recomputable from `day`
    total_minutes: int = 0      # derived, see recompute()

    def __post_init__(self):
        self.day_name = weekday_name(self.day)
        filled = empty_buckets()
        filled.update(self.bucket_minutes)
        self.bucket_minutes = filled
        self.recompute()

    def recompute(self) -> int:
        """Rebuild total_minutes from the buckets and return it."""
        self.total_minutes = sum(self.bucket_minutes.values())
        return self.total_minutes

    @property
    def total_hours(self) -> str:
        return format_minutes(self.total_minutes)

    @property
    def key(self) -> str:
        return self.day.isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "dayName": self.day_name,
            "slots": {bucket.value: minutes for bucket, minutes in self.bucket_minutes.items()},
            "totalMinutes": self.total_minutes,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict) -> DailyRecord:
        """Build from the document form. Slots must already be canonical."""
        slots = data.get("slots") or {}
        buckets: dict[BucketId, int] = {}
        for raw_key, minutes in slots.items():
            try:
                bucket = BucketId(raw_key)
            except ValueError:
                raise ValidationError(f"{key}: non-canonical bucket key {raw_key!r}")
            if int(minutes) < 0:
                raise ValidationError(f"{key}: negative minutes in {raw_key!r}")
            buckets[bucket] = int(minutes)
        return cls(
            day=parse_iso_date(key),
            bucket_minutes=buckets,
            notes=str(data.get("notes") or ""),
        )

    def to_frontend(self) -> dict[str, Any]:
        """Flat view returned by the consumer API."""
        return {
            "date": self.key,
            "day_name": self.day_name,
            "slots": {bucket.label: minutes for bucket, minutes in self.bucket_minutes.items()},
            "total_minutes": self.total_minutes,
            "total_hours": self.total_hours,
            "notes": self.notes,
        }


@dataclass
class WeeklyRecord:
    iso_year: int
    iso_week: int
    date_range_label: str
    total_minutes: int = 0
    days_with_data: int = 0
    rank: int = 0               # 0 = unranked; assigned by RankingEngine only

    @property
    def key(self) -> tuple[int, int]:
        return (self.iso_year, self.iso_week)

    @property
    def total_hours(self) -> str:
        return format_minutes(self.total_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekNumber": self.iso_week,
            "year": self.iso_year,
            "dateRange": self.date_range_label,
            "totalMinutes": self.total_minutes,
            "totalHours": self.total_hours,
            "daysWithData": self.days_with_data,
            "rank": self.rank,
        }

    def to_frontend(self, ranked_weeks: Optional[int] = None) -> dict[str, Any]:
        payload = {
            "week_number": self.iso_week,
            "year": self.iso_year,
            "date_range": self.date_range_label,
            "total_minutes": self.total_minutes,
            "total_hours": self.total_hours,
            "days_with_data": self.days_with_data,
            "rank": self.rank,
        }
        if ranked_weeks is not None:
            payload["ranked_weeks"] = ranked_weeks
        return payload
