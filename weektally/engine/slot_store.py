"""SlotStore — canonical per-day records.

Owns every DailyRecord. All mutations validate first, then touch state, then
recompute the day's total from its buckets. A running total is never kept.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from weektally.models.bucket import BucketId
from weektally.models.errors import ValidationError
from weektally.models.records import DailyRecord, check_trackable

logger = logging.getLogger(__name__)


def _check_minutes(value, what: str) -> int:
    # bool is an int subclass; True minutes is always a caller bug
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{what} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{what} must be >= 0, got {value}")
    return value


class SlotStore:
    """In-memory owner of DailyRecords keyed by date.

    `on_change` is called with the affected date after every mutation so the
    caller can roll the week up before the mutating call returns.
    """

    def __init__(self, on_change: Optional[Callable[[date], None]] = None):
        self._records: dict[date, DailyRecord] = {}
        self.on_change = on_change

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, day: date) -> bool:
        return day in self._records

    def get(self, day: date) -> Optional[DailyRecord]:
        return self._records.get(day)

    def get_or_create(self, day: date) -> DailyRecord:
        record = self._records.get(day)
        if record is None:
            check_trackable(day)
            record = DailyRecord(day=day)
            self._records[day] = record
            logger.debug("Created daily record for %s", day)
        return record

    def add_minutes(self, day: date, bucket: BucketId | str, delta: int) -> DailyRecord:
        bucket = BucketId.parse(bucket)
        delta = _check_minutes(delta, "delta")
        record = self.get_or_create(day)
        record.bucket_minutes[bucket] += delta
        record.recompute()
        logger.info("Added %d min to %s on %s (bucket=%d, total=%d)",
                    delta, bucket.value, day, record.bucket_minutes[bucket], record.total_minutes)
        self._changed(day)
        return record

    def set_minutes(self, day: date, bucket: BucketId | str, value: int) -> DailyRecord:
        bucket = BucketId.parse(bucket)
        value = _check_minutes(value, "minutes")
        record = self.get_or_create(day)
        record.bucket_minutes[bucket] = value
        record.recompute()
        logger.info("Set %s on %s to %d min (total=%d)", bucket.value, day, value, record.total_minutes)
        self._changed(day)
        return record

    def set_notes(self, day: date, text: Optional[str]) -> DailyRecord:
        if text is not None and not isinstance(text, str):
            raise ValidationError(f"notes must be text, got {type(text).__name__}")
        record = self.get_or_create(day)
        record.notes = text or ""
        self._changed(day)
        return record

    def replace(self, record: DailyRecord) -> None:
        """Overwrite the record for its date wholesale (CSV/JSON import)."""
        check_trackable(record.day)
        record.recompute()
        self._records[record.day] = record

    def load(self, records: Iterable[DailyRecord]) -> None:
        self._records = {}
        for record in records:
            self.replace(record)

    def all_records(self) -> list[DailyRecord]:
        return [self._records[d] for d in sorted(self._records)]

    def records_between(self, start: date, end: date) -> list[DailyRecord]:
        return [r for r in self.all_records() if start <= r.day <= end]

    def _changed(self, day: date) -> None:
        if self.on_change is not None:
            self.on_change(day)
