"""WeekAggregator — rolls daily totals up into ISO weeks.

Weekly records are rebuilt from the SlotStore every time, never patched, so
a week can not drift away from the days it covers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from weektally.engine.iso_week import date_range_label, week_dates, week_of
from weektally.engine.slot_store import SlotStore
from weektally.models.records import WeeklyRecord

logger = logging.getLogger(__name__)


class WeekAggregator:
    def __init__(self, store: SlotStore):
        self._store = store
        self._weeks: dict[tuple[int, int], WeeklyRecord] = {}

    @staticmethod
    def week_of(day: date) -> tuple[int, int]:
        return week_of(day)

    def get(self, iso_year: int, iso_week: int) -> Optional[WeeklyRecord]:
        return self._weeks.get((iso_year, iso_week))

    def get_for_date(self, day: date) -> WeeklyRecord:
        """Week containing `day`; a zero-valued record if it has no data yet."""
        key = week_of(day)
        return self._weeks.get(key) or self._build(*key)

    def all_weeks(self) -> list[WeeklyRecord]:
        return [self._weeks[k] for k in sorted(self._weeks)]

    def recompute_week(self, iso_year: int, iso_week: int) -> WeeklyRecord:
        """Sum the week's seven days and overwrite (or insert) its record.

        A week whose total is 0 is removed and returned unranked. Otherwise
        the previous rank is carried over; RankingEngine must run afterwards.
        """
        week = self._build(iso_year, iso_week)
        if week.total_minutes == 0:
            if self._weeks.pop(week.key, None) is not None:
                logger.info("Removed empty week %d-W%02d", iso_year, iso_week)
            return week
        previous = self._weeks.get(week.key)
        if previous is not None:
            week.rank = previous.rank
        self._weeks[week.key] = week
        logger.debug("Recomputed week %d-W%02d: %d min over %d day(s)",
                     iso_year, iso_week, week.total_minutes, week.days_with_data)
        return week

    def recompute_for_date(self, day: date) -> WeeklyRecord:
        return self.recompute_week(*week_of(day))

    def recompute_all(self) -> list[WeeklyRecord]:
        """Discard every weekly record and rebuild from days with data."""
        grouped: dict[tuple[int, int], int] = defaultdict(int)
        for record in self._store.all_records():
            if record.total_minutes > 0:
                grouped[week_of(record.day)] += 1

        self._weeks = {}
        for iso_year, iso_week in sorted(grouped):
            week = self._build(iso_year, iso_week)
            self._weeks[week.key] = week

        logger.info("Rebuilt %d week(s) from %d daily record(s)", len(self._weeks), len(self._store))
        return self.all_weeks()

    def _build(self, iso_year: int, iso_week: int) -> WeeklyRecord:
        total = 0
        days_with_data = 0
        for day in week_dates(iso_year, iso_week):
            record = self._store.get(day)
            if record is None:
                continue
            total += record.total_minutes
            if record.total_minutes > 0:
                days_with_data += 1
        return WeeklyRecord(
            iso_year=iso_year,
            iso_week=iso_week,
            date_range_label=date_range_label(iso_year, iso_week),
            total_minutes=total,
            days_with_data=days_with_data,
        )
