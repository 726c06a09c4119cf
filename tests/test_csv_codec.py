"""Tests for CSV encoding, the quote-aware row splitter and CSVCodec import/export."""

import pytest
from datetime import date

from weektally.data_pipeline.csv_codec import (
    DAILY_HEADER,
    WEEKLY_HEADER,
    CSVCodec,
    encode_field,
    parse_daily_row,
    split_rows,
    weekly_row,
)
from weektally.engine.slot_store import SlotStore
from weektally.engine.week_aggregator import WeekAggregator
from weektally.models.bucket import BucketId
from weektally.models.errors import CSVImportError
from weektally.models.records import WeeklyRecord


@pytest.fixture
def codec(wired):
    store, aggregator, ranking = wired
    return CSVCodec(store, aggregator, ranking)


def _daily_line(day, minutes=None, notes=""):
    minutes = minutes or {}
    cells = [day, "Whatever"] + [str(minutes.get(b, 0)) for b in BucketId] + ["0", "0H 0M", notes]
    return ",".join(cells)


# ═══════════════════════════════════════════════════════════════════════════
# Field encoding & row splitting (pure functions)
# ═══════════════════════════════════════════════════════════════════════════


class TestEncoding:
    def test_plain_field_unquoted(self):
        assert encode_field("deep work") == "deep work"
        assert encode_field(42) == "42"
        assert encode_field(None) == ""

    def test_special_characters_quoted(self):
        assert encode_field("a,b") == '"a,b"'
        assert encode_field('say "hi"') == '"say ""hi"""'
        assert encode_field("line1\nline2") == '"line1\nline2"'

    def test_surrounding_whitespace_quoted(self):
        assert encode_field(" padded ") == '" padded "'

    def test_header_layout(self):
        assert DAILY_HEADER[:3] == ["Date", "Day", "5-6 AM"]
        assert DAILY_HEADER[18] == "Other"
        assert DAILY_HEADER[-3:] == ["Total Minutes", "Total Hours", "Notes"]
        assert len(DAILY_HEADER) == 22
        assert WEEKLY_HEADER == ["Week", "Year", "Date Range", "Total Minutes", "Total Hours", "Rank"]


class TestSplitRows:
    def test_simple_rows(self):
        assert split_rows("a,b\nc,d\n") == [["a", "b"], ["c", "d"]]

    def test_quoted_comma_and_escaped_quote(self):
        assert split_rows('x,"a, ""b"""\n') == [["x", 'a, "b"']]

    def test_newline_inside_quotes(self):
        assert split_rows('x,"line1\nline2",y') == [["x", "line1\nline2", "y"]]

    def test_crlf_and_blank_lines(self):
        assert split_rows("a,b\r\n\r\n\nc,d") == [["a", "b"], ["c", "d"]]

    def test_unquoted_whitespace_trimmed_quoted_kept(self):
        assert split_rows('  a  ," b "\n') == [["a", " b "]]

    def test_trailing_empty_field(self):
        assert split_rows("a,\n") == [["a", ""]]


class TestParseDailyRow:
    def test_valid_row(self):
        cells = split_rows(_daily_line("2024-03-04", {BucketId.H05_06: 30, BucketId.OTHER: 5}, "hi"))[0]
        record = parse_daily_row(cells, 1)
        assert record.day == date(2024, 3, 4)
        assert record.total_minutes == 35
        assert record.day_name == "Monday"
        assert record.notes == "hi"

    def test_blank_minutes_read_as_zero(self):
        cells = ["2024-03-04", "Monday"] + [""] * 17
        assert parse_daily_row(cells, 1).total_minutes == 0

    @pytest.mark.parametrize("line, reason", [
        ("2024-03-04,Monday,1,2", "columns"),
        (_daily_line("03/04/2024"), "invalid date"),
        (_daily_line("2024-02-30"), "invalid date"),
    ])
    def test_bad_rows(self, line, reason):
        with pytest.raises(CSVImportError) as excinfo:
            parse_daily_row(split_rows(line)[0], 7)
        assert excinfo.value.row_number == 7
        assert reason in str(excinfo.value)

    @pytest.mark.parametrize("value", ["-5", "1.5", "abc"])
    def test_non_integer_minutes_rejected(self, value):
        cells = ["2024-03-04", "Monday", value] + ["0"] * 16
        with pytest.raises(CSVImportError):
            parse_daily_row(cells, 1)


# ═══════════════════════════════════════════════════════════════════════════
# CSVCodec
# ═══════════════════════════════════════════════════════════════════════════


class TestCSVCodec:
    def test_export_empty_store_is_header_only(self, codec):
        export = codec.export()
        assert export.daily == ",".join(DAILY_HEADER) + "\n"
        assert export.weekly == ",".join(WEEKLY_HEADER) + "\n"

    def test_export_daily_rows(self, codec, wired):
        store, _, _ = wired
        store.add_minutes(date(2024, 3, 5), BucketId.H05_06, 75)
        store.set_notes(date(2024, 3, 5), "focus, then rest")
        lines = codec.export_daily().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("2024-03-05,Tuesday,75,")
        assert lines[1].endswith(',75,1H 15M,"focus, then rest"')

    def test_export_weekly_rank_order(self, codec, wired):
        store, _, _ = wired
        store.add_minutes(date(2024, 3, 4), BucketId.OTHER, 300)
        store.add_minutes(date(2024, 3, 11), BucketId.OTHER, 500)
        store.set_notes(date(2024, 3, 18), "nothing tracked")
        lines = codec.export_weekly().splitlines()
        assert lines[1] == "Week 11,2024,Mar 11 - Mar 17,500,8H 20M,1"
        assert lines[2] == "Week 10,2024,Mar 4 - Mar 10,300,5H 0M,2"
        assert len(lines) == 3

    def test_weekly_row_marks_unranked_week(self):
        """A week without minutes renders its rank as Unranked."""
        week = WeeklyRecord(2024, 12, "Mar 18 - Mar 24")
        assert weekly_row(week)[-1] == "Unranked"

    def test_round_trip_into_empty_store(self, codec, wired):
        store, _, _ = wired
        store.add_minutes(date(2024, 3, 4), BucketId.H05_06, 30)
        store.add_minutes(date(2024, 3, 4), BucketId.H06_07, 45)
        store.set_notes(date(2024, 3, 4), 'said "ok", left\nearly')
        store.add_minutes(date(2025, 1, 1), BucketId.OTHER, 12)
        text = codec.export_daily()

        fresh = SlotStore()
        aggregator = WeekAggregator(fresh)
        result = CSVCodec(fresh, aggregator).import_daily(text)

        assert (result.imported_count, result.error_count, result.total_rows) == (2, 0, 2)
        for original in store.all_records():
            copy = fresh.get(original.day)
            assert copy.bucket_minutes == original.bucket_minutes
            assert copy.total_minutes == original.total_minutes
            assert copy.notes == original.notes
        assert aggregator.get(2024, 10).rank == 1
        assert aggregator.get(2025, 1).total_minutes == 12
        assert aggregator.get(2025, 1).rank == 2

    def test_import_skips_and_counts_bad_rows(self, codec, wired):
        store, aggregator, _ = wired
        text = "\n".join([
            ",".join(DAILY_HEADER),
            _daily_line("2024-03-04", {BucketId.H05_06: 30}),
            _daily_line("not-a-date"),
            "2024-03-05,Tuesday,oops",
            _daily_line("2024-03-06", {BucketId.OTHER: 20}),
        ])
        result = codec.import_daily(text)
        assert result.imported_count == 2
        assert result.error_count == 2
        assert result.total_rows == 4
        assert result.errors[0].startswith("row 2:")
        assert aggregator.get(2024, 10).total_minutes == 50
        assert aggregator.get(2024, 10).rank == 1

    def test_import_replaces_existing_day(self, codec, wired):
        store, _, _ = wired
        store.add_minutes(date(2024, 3, 4), BucketId.H09_10, 200)
        codec.import_daily(_daily_line("2024-03-04", {BucketId.H05_06: 10}))
        record = store.get(date(2024, 3, 4))
        assert record.bucket_minutes[BucketId.H09_10] == 0
        assert record.total_minutes == 10

    def test_import_ignores_stale_total_column(self, codec, wired):
        store, _, _ = wired
        cells = ["2024-03-04", "Friday", "30"] + ["0"] * 16 + ["999", "16H 39M", ""]
        codec.import_daily(",".join(cells))
        record = store.get(date(2024, 3, 4))
        assert record.total_minutes == 30
        assert record.day_name == "Monday"

    def test_import_empty_text(self, codec):
        result = codec.import_daily("")
        assert (result.imported_count, result.error_count, result.total_rows) == (0, 0, 0)

    def test_import_counts_day_past_last_trackable_week(self, codec, wired):
        """A row dated in the final partial week of 9999 is skipped, the rest imported."""
        store, aggregator, _ = wired
        text = "\n".join([
            _daily_line("9999-12-31", {BucketId.OTHER: 30}),
            _daily_line("2024-03-04", {BucketId.H05_06: 15}),
        ])
        result = codec.import_daily(text)
        assert (result.imported_count, result.error_count) == (1, 1)
        assert "9999-12-31" in result.errors[0]
        assert store.get(date(9999, 12, 31)) is None
        assert aggregator.get(2024, 10).total_minutes == 15
