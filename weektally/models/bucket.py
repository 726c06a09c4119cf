"""Time buckets a day's minutes are attributed to.

Sixteen clock-hour spans (05-06 .. 20-21) plus OTHER. The enum value is the
key stored in the persisted document. Older releases wrote the same bucket
under several other spellings; LEGACY_ALIASES maps every one of them back to
its member and is the only place those spellings are known.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from weektally.models.errors import ValidationError


class BucketId(str, Enum):
    H05_06 = "5-6am"
    H06_07 = "6-7am"
    H07_08 = "7-8am"
    H08_09 = "8-9am"
    H09_10 = "9-10am"
    H10_11 = "10-11am"
    H11_12 = "11-12pm"
    H12_13 = "12-1pm"
    H13_14 = "1-2pm"
    H14_15 = "2-3pm"
    H15_16 = "3-4pm"
    H16_17 = "4-5pm"
    H17_18 = "5-6pm"
    H18_19 = "6-7pm"
    H19_20 = "7-8pm"
    H20_21 = "8-9pm"
    OTHER = "other"

    @property
    def start_hour(self) -> Optional[int]:
        """Clock hour the span starts at, None for OTHER."""
        if self is BucketId.OTHER:
            return None
        return int(self.name[1:3])

    @property
    def label(self) -> str:
        """Display / CSV header text, e.g. '5-6 AM'."""
        return _LABELS[self]

    @property
    def column(self) -> str:
        """Column name used by the old SQL backend, e.g. 'slot_5_6_am'."""
        return _COLUMNS[self]

    @classmethod
    def hourly(cls) -> list[BucketId]:
        return [b for b in cls if b is not cls.OTHER]

    @classmethod
    def for_hour(cls, hour: int) -> BucketId:
        """Bucket covering a clock hour (0-23). Hours outside 05-21 are OTHER."""
        if not 0 <= hour <= 23:
            raise ValidationError(f"hour out of range: {hour}")
        for bucket in cls.hourly():
            if bucket.start_hour == hour:
                return bucket
        return cls.OTHER

    @classmethod
    def parse(cls, raw: BucketId | str) -> BucketId:
        """Resolve a member, a canonical key or any legacy spelling.

        Raises ValidationError for anything else.
        """
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise ValidationError(f"unknown bucket: {raw!r}")
        if raw in _BY_VALUE:
            return _BY_VALUE[raw]
        if raw in LEGACY_ALIASES:
            return LEGACY_ALIASES[raw]
        folded = _fold(raw)
        if folded in _FOLDED:
            return _FOLDED[folded]
        raise ValidationError(f"unknown bucket: {raw!r}")


_LABELS: dict[BucketId, str] = {
    BucketId.H05_06: "5-6 AM",
    BucketId.H06_07: "6-7 AM",
    BucketId.H07_08: "7-8 AM",
    BucketId.H08_09: "8-9 AM",
    BucketId.H09_10: "9-10 AM",
    BucketId.H10_11: "10-11 AM",
    BucketId.H11_12: "11-12 PM",
    BucketId.H12_13: "12-1 PM",
    BucketId.H13_14: "1-2 PM",
    BucketId.H14_15: "2-3 PM",
    BucketId.H15_16: "3-4 PM",
    BucketId.H16_17: "4-5 PM",
    BucketId.H17_18: "5-6 PM",
    BucketId.H18_19: "6-7 PM",
    BucketId.H19_20: "7-8 PM",
    BucketId.H20_21: "8-9 PM",
    BucketId.OTHER: "Other",
}

# The SQL schema called the 11-12 span "slot_11_12_am"
_COLUMNS: dict[BucketId, str] = {
    BucketId.H05_06: "slot_5_6_am",
    BucketId.H06_07: "slot_6_7_am",
    BucketId.H07_08: "slot_7_8_am",
    BucketId.H08_09: "slot_8_9_am",
    BucketId.H09_10: "slot_9_10_am",
    BucketId.H10_11: "slot_10_11_am",
    BucketId.H11_12: "slot_11_12_am",
    BucketId.H12_13: "slot_12_1_pm",
    BucketId.H13_14: "slot_1_2_pm",
    BucketId.H14_15: "slot_2_3_pm",
    BucketId.H15_16: "slot_3_4_pm",
    BucketId.H16_17: "slot_4_5_pm",
    BucketId.H17_18: "slot_5_6_pm",
    BucketId.H18_19: "slot_6_7_pm",
    BucketId.H19_20: "slot_7_8_pm",
    BucketId.H20_21: "slot_8_9_pm",
    BucketId.OTHER: "other_time",
}


def _build_aliases() -> dict[str, BucketId]:
    aliases: dict[str, BucketId] = {}
    for bucket in BucketId:
        aliases[bucket.column] = bucket
        aliases[bucket.label] = bucket
        aliases[bucket.name] = bucket
    # Spellings that only ever appeared in older UI builds
    aliases["11-12 AM"] = BucketId.H11_12
    aliases["Other Time"] = BucketId.OTHER
    # Canonical keys are not legacy
    for bucket in BucketId:
        aliases.pop(bucket.value, None)
    return aliases


def _fold(raw: str) -> str:
    return "".join(raw.split()).lower()


LEGACY_ALIASES: dict[str, BucketId] = _build_aliases()

_BY_VALUE: dict[str, BucketId] = {b.value: b for b in BucketId}
_FOLDED: dict[str, BucketId] = {
    **{_fold(k): v for k, v in LEGACY_ALIASES.items()},
    **{_fold(b.value): b for b in BucketId},
}
