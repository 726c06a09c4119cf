"""RankingEngine — dense 1..N ranks of weeks by total minutes.

Only weeks with minutes are ranked. Equal totals are broken by
(iso_year, iso_week) ascending, so the older week ranks higher.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from weektally.models.records import WeeklyRecord

logger = logging.getLogger(__name__)


def _sort_key(week: WeeklyRecord) -> tuple[int, int, int]:
    return (-week.total_minutes, week.iso_year, week.iso_week)


class RankingEngine:
    def recompute_ranks(self, weeks: Iterable[WeeklyRecord]) -> list[WeeklyRecord]:
        """Assign ranks in place and return the ranked weeks in rank order.

        Full recomputation; zero-total weeks are reset to rank 0.
        """
        ranked = []
        for week in weeks:
            if week.total_minutes > 0:
                ranked.append(week)
            else:
                week.rank = 0
        ranked.sort(key=_sort_key)
        for position, week in enumerate(ranked, start=1):
            week.rank = position
        logger.debug("Ranked %d week(s)", len(ranked))
        return ranked

    @staticmethod
    def ranked(weeks: Iterable[WeeklyRecord], limit: Optional[int] = None) -> list[WeeklyRecord]:
        """Ranked weeks in rank order; limit None or <= 0 returns all."""
        result = sorted((w for w in weeks if w.rank > 0), key=lambda w: w.rank)
        if limit is not None and limit > 0:
            result = result[:limit]
        return result

    @staticmethod
    def rank_of(week: WeeklyRecord, weeks: Iterable[WeeklyRecord]) -> tuple[int, int]:
        """(rank, N) for 'rank X of N'; N excludes weeks without minutes."""
        total = sum(1 for w in weeks if w.total_minutes > 0)
        return week.rank, total
