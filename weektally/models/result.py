"""Value-or-error wrapper returned by every consumer API call.

Lets callers tell "no data" apart from "the operation failed" without
catching exceptions at the UI boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from weektally.models.errors import WeektallyError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[WeektallyError] = None

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or re-raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value

    @property
    def error_type(self) -> str:
        return type(self.error).__name__ if self.error is not None else ""


def ok(value: T) -> Result[T]:
    return Result(value=value)


def fail(error: WeektallyError) -> Result:
    return Result(error=error)
