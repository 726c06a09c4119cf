"""CSV interchange for daily and weekly records.

Daily columns:
    Date, Day, 5-6 AM .. 8-9 PM, Other, Total Minutes, Total Hours, Notes
Weekly columns:
    Week, Year, Date Range, Total Minutes, Total Hours, Rank

Import trusts only the seventeen bucket columns. Day name and totals are
derived again from the date and the buckets, so a hand-edited file can not
break the total == sum(buckets) invariant.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from weektally.engine.ranking import RankingEngine
from weektally.engine.slot_store import SlotStore
from weektally.engine.week_aggregator import WeekAggregator
from weektally.models.bucket import BucketId
from weektally.models.errors import ConsistencyError, CSVImportError, ValidationError
from weektally.models.records import DailyRecord, WeeklyRecord, format_minutes, parse_iso_date

logger = logging.getLogger(__name__)

DAILY_HEADER = (
    ["Date", "Day"]
    + [bucket.label for bucket in BucketId]
    + ["Total Minutes", "Total Hours", "Notes"]
)
WEEKLY_HEADER = ["Week", "Year", "Date Range", "Total Minutes", "Total Hours", "Rank"]

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MINUTES_RE = re.compile(r"^\d+$")

_FIRST_BUCKET_COL = 2
_TOTAL_COL = _FIRST_BUCKET_COL + len(BucketId)        # 19
_NOTES_COL = _TOTAL_COL + 2                            # 21
_NEEDS_QUOTES = (",", '"', "\n", "\r")


@dataclass
class ImportResult:
    imported_count: int = 0
    error_count: int = 0
    total_rows: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "imported_count": self.imported_count,
            "error_count": self.error_count,
            "total_rows": self.total_rows,
            "errors": list(self.errors),
        }


@dataclass
class CSVExport:
    daily: str
    weekly: str


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def encode_field(value) -> str:
    """Quote a field holding a comma, quote or newline, doubling inner quotes.

    Fields with leading/trailing whitespace are quoted too, so the decoder's
    trimming can not eat it.
    """
    text = "" if value is None else str(value)
    if any(ch in text for ch in _NEEDS_QUOTES) or text != text.strip():
        return '"' + text.replace('"', '""') + '"'
    return text


def encode_row(values) -> str:
    return ",".join(encode_field(v) for v in values) + "\n"


def daily_row(record: DailyRecord) -> list:
    return (
        [record.key, record.day_name]
        + [record.bucket_minutes[bucket] for bucket in BucketId]
        + [record.total_minutes, format_minutes(record.total_minutes), record.notes]
    )


def weekly_row(week: WeeklyRecord) -> list:
    return [
        f"Week {week.iso_week}",
        week.iso_year,
        week.date_range_label,
        week.total_minutes,
        week.total_hours,
        week.rank if week.rank > 0 else "Unranked",
    ]


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def split_rows(text: str) -> list[list[str]]:
    """Split CSV text into rows of trimmed fields.

    Character scanner: an unescaped '"' toggles the inside-quotes flag, '""'
    inside quotes is a literal quote, commas and newlines only separate
    outside quotes. Whitespace is trimmed only where it sat outside quotes.
    Blank lines are dropped.
    """
    rows: list[list[str]] = []
    row: list[str] = []
    chars: list[tuple[str, bool]] = []   # (char, was_quoted)
    in_quotes = False
    i = 0
    n = len(text)

    def end_field():
        start, stop = 0, len(chars)
        while start < stop and not chars[start][1] and chars[start][0].isspace():
            start += 1
        while stop > start and not chars[stop - 1][1] and chars[stop - 1][0].isspace():
            stop -= 1
        row.append("".join(ch for ch, _ in chars[start:stop]))
        chars.clear()

    def end_row():
        end_field()
        if len(row) > 1 or row[0] != "":
            rows.append(list(row))
        row.clear()

    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    chars.append(('"', True))
                    i += 1
                else:
                    in_quotes = False
            else:
                chars.append((ch, True))
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            end_field()
        elif ch == "\n" or ch == "\r":
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            end_row()
        else:
            chars.append((ch, False))
        i += 1

    if chars or row:
        end_row()
    return rows


def _is_header(cells: list[str]) -> bool:
    return bool(cells) and cells[0].strip().lower() == "date"


def _parse_minutes(cell: str, column: str, row_number: int) -> int:
    if cell == "":
        return 0
    if not MINUTES_RE.match(cell):
        raise CSVImportError(row_number, f"{column}: expected a non-negative integer, got {cell!r}")
    return int(cell)


def parse_daily_row(cells: list[str], row_number: int) -> DailyRecord:
    """Turn one data row into a DailyRecord. Raises CSVImportError."""
    if len(cells) < _TOTAL_COL:
        raise CSVImportError(row_number, f"expected at least {_TOTAL_COL} columns, got {len(cells)}")

    raw_date = cells[0]
    if not DATE_RE.match(raw_date):
        raise CSVImportError(row_number, f"invalid date {raw_date!r} (expected YYYY-MM-DD)")
    try:
        day = parse_iso_date(raw_date)
    except ValidationError as exc:
        raise CSVImportError(row_number, str(exc)) from exc

    buckets = {
        bucket: _parse_minutes(cells[_FIRST_BUCKET_COL + offset], bucket.label, row_number)
        for offset, bucket in enumerate(BucketId)
    }
    notes = cells[_NOTES_COL] if len(cells) > _NOTES_COL else ""
    record = DailyRecord(day=day, bucket_minutes=buckets, notes=notes)

    stored = cells[_TOTAL_COL] if len(cells) > _TOTAL_COL else ""
    if MINUTES_RE.match(stored) and int(stored) != record.total_minutes:
        logger.warning("Row %d: %s", row_number, ConsistencyError(raw_date, int(stored), record.total_minutes))
    return record


# ---------------------------------------------------------------------------
# Codec bound to a store
# ---------------------------------------------------------------------------

class CSVCodec:
    def __init__(
        self,
        store: SlotStore,
        aggregator: WeekAggregator,
        ranking: Optional[RankingEngine] = None,
    ):
        self._store = store
        self._aggregator = aggregator
        self._ranking = ranking or RankingEngine()

    def export_daily(self) -> str:
        lines = [encode_row(DAILY_HEADER)]
        lines.extend(encode_row(daily_row(r)) for r in self._store.all_records())
        return "".join(lines)

    def export_weekly(self) -> str:
        weeks = self._aggregator.all_weeks()
        ordered = RankingEngine.ranked(weeks) + [w for w in weeks if w.rank <= 0]
        lines = [encode_row(WEEKLY_HEADER)]
        lines.extend(encode_row(weekly_row(w)) for w in ordered)
        return "".join(lines)

    def export(self) -> CSVExport:
        return CSVExport(daily=self.export_daily(), weekly=self.export_weekly())

    def import_daily(self, text: str) -> ImportResult:
        """Import daily rows; bad rows are skipped and counted.

        Rows replace any existing record for the same date. Weeks and ranks
        are rebuilt from scratch afterwards.
        """
        result = ImportResult()
        rows = split_rows(text or "")
        if rows and _is_header(rows[0]):
            rows = rows[1:]

        for row_number, cells in enumerate(rows, start=1):
            result.total_rows += 1
            try:
                record = parse_daily_row(cells, row_number)
            except CSVImportError as exc:
                result.error_count += 1
                result.errors.append(str(exc))
                logger.warning("Skipping CSV %s", exc)
                continue
            self._store.replace(record)
            result.imported_count += 1

        self._aggregator.recompute_all()
        self._ranking.recompute_ranks(self._aggregator.all_weeks())
        logger.info("CSV import: %d imported, %d skipped, %d row(s)",
                    result.imported_count, result.error_count, result.total_rows)
        return result
