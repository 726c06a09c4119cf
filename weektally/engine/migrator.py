"""SchemaMigrator — folds legacy bucket spellings into the canonical keys.

Works on the raw `dailyData` mapping of the persisted document before it is
turned into DailyRecords:

    {"2024-03-04": {"dayName": "Monday",
                    "slots": {"slot_5_6_am": 30, "6-7am": 45, ...},
                    "totalMinutes": 75,
                    "notes": ""}}

A legacy key's value is added into its canonical key and the legacy key is
removed in the same step, which is what makes a second run a no-op. Rows
written by the old SQL backend keep their slot columns at the top level of
the record; those are lifted into "slots" first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from weektally.models.bucket import LEGACY_ALIASES, BucketId
from weektally.models.errors import ConsistencyError, ValidationError
from weektally.models.records import parse_iso_date, weekday_name

logger = logging.getLogger(__name__)

_CANONICAL_KEYS = [bucket.value for bucket in BucketId]
_COLUMN_KEYS = {bucket.column for bucket in BucketId}

# Top-level field names used by the SQL backend rows
_FLAT_FIELDS = {"day_name": "dayName", "total_minutes": "totalMinutes"}


@dataclass
class MigrationReport:
    dirty_dates: list[str] = field(default_factory=list)
    merged_keys: int = 0
    dropped_keys: list[tuple[str, str]] = field(default_factory=list)
    coerced_values: int = 0
    repaired_totals: list[ConsistencyError] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.dirty_dates)

    def summary(self) -> str:
        return (
            f"{len(self.dirty_dates)} record(s) changed, {self.merged_keys} legacy key(s) merged, "
            f"{len(self.dropped_keys)} unknown key(s) dropped, "
            f"{len(self.repaired_totals)} total(s) repaired"
        )


def _coerce(value: Any) -> tuple[int, bool]:
    """Return (non-negative int, was_changed)."""
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value, False
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return 0, True
    return max(number, 0), True


class SchemaMigrator:
    def normalize(self, daily_data: dict[str, Any]) -> MigrationReport:
        """Normalize every record of `daily_data` in place."""
        report = MigrationReport()
        for key in sorted(daily_data):
            record = daily_data[key]
            if not isinstance(record, dict):
                continue
            if self._normalize_record(key, record, report):
                report.dirty_dates.append(key)

        if report.changed:
            logger.info("Schema migration: %s", report.summary())
        else:
            logger.debug("Schema migration: nothing to do")
        return report

    def normalize_document(self, document: dict[str, Any]) -> MigrationReport:
        daily = document.get("dailyData")
        if not isinstance(daily, dict):
            document["dailyData"] = daily = {}
        return self.normalize(daily)

    def _normalize_record(self, key: str, record: dict, report: MigrationReport) -> bool:
        dirty = False

        slots = record.get("slots")
        if not isinstance(slots, dict):
            slots = {}
            dirty = True

        # SQL rows: slot columns and snake_case fields at the top level
        for column in [k for k in record if k in _COLUMN_KEYS]:
            slots[column] = _coerce(slots.get(column, 0))[0] + _coerce(record.pop(column))[0]
            dirty = True
        for flat, camel in _FLAT_FIELDS.items():
            if flat in record:
                record.setdefault(camel, record[flat])
                del record[flat]
                dirty = True

        for legacy_key, bucket in LEGACY_ALIASES.items():
            if legacy_key not in slots:
                continue
            value, _ = _coerce(slots.pop(legacy_key))
            current, _ = _coerce(slots.get(bucket.value, 0))
            slots[bucket.value] = current + value
            report.merged_keys += 1
            dirty = True
            logger.debug("%s: merged %r into %r (+%d)", key, legacy_key, bucket.value, value)

        for unknown in [k for k in slots if k not in _CANONICAL_KEYS]:
            try:
                bucket = BucketId.parse(unknown)
            except ValidationError:
                report.dropped_keys.append((key, unknown))
                logger.warning("%s: dropping unknown bucket key %r (value=%r)", key, unknown, slots[unknown])
                del slots[unknown]
                dirty = True
                continue
            # other spellings of a known bucket (case, spacing)
            value, _ = _coerce(slots.pop(unknown))
            current, _ = _coerce(slots.get(bucket.value, 0))
            slots[bucket.value] = current + value
            report.merged_keys += 1
            dirty = True
            logger.debug("%s: merged %r into %r (+%d)", key, unknown, bucket.value, value)

        canonical: dict[str, int] = {}
        for bucket_key in _CANONICAL_KEYS:
            if bucket_key not in slots:
                canonical[bucket_key] = 0
                dirty = True
                continue
            value, changed = _coerce(slots[bucket_key])
            if changed:
                report.coerced_values += 1
                dirty = True
            canonical[bucket_key] = value
        record["slots"] = canonical

        total = sum(canonical.values())
        stored = record.get("totalMinutes")
        if stored != total:
            if stored is not None:
                drift = ConsistencyError(key, _coerce(stored)[0], total)
                report.repaired_totals.append(drift)
                logger.warning("Consistency drift resolved from buckets: %s", drift)
            record["totalMinutes"] = total
            dirty = True

        if not isinstance(record.get("notes"), str):
            record["notes"] = "" if record.get("notes") is None else str(record["notes"])
            dirty = True

        try:
            name = weekday_name(parse_iso_date(key))
        except ValidationError:
            name = None
        if name is not None and record.get("dayName") != name:
            record["dayName"] = name
            dirty = True

        return dirty
