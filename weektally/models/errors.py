"""Error taxonomy shared by the engine, storage and service layers."""

from __future__ import annotations


class WeektallyError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(WeektallyError):
    """Bad input rejected before any state was touched."""


class NotFoundError(WeektallyError):
    """A lookup for a date, week or setting that does not exist."""


class PersistenceError(WeektallyError):
    """Reading, writing or backing up the backing store failed."""


class CSVImportError(WeektallyError):
    """A single CSV row could not be imported. The row is skipped, not the file."""

    def __init__(self, row_number: int, reason: str):
        super().__init__(f"row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason


class ConsistencyError(WeektallyError):
    """A stored total disagreed with the sum of its buckets.

    Never raised to callers: the total is recomputed from the buckets and the
    drift is logged.
    """

    def __init__(self, key: str, stored: int, computed: int):
        super().__init__(f"{key}: stored total {stored} != bucket sum {computed}")
        self.key = key
        self.stored = stored
        self.computed = computed
