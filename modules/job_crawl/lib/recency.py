"""
Recency filter over the free-text "posted X ago" field.

Classification (first match wins, case-insensitive):
  1. "just now" / "minute" / "hour"  -> recent (age 0, always kept)
  2. "<N> day"                        -> N days
  3. "<N> week"                       -> N * 7 days
  4. "<N> month"                      -> N * 30 days
  5. anything else                    -> unparseable (treated as stale)
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .models import JobRecord, Outcome

_RECENT_MARKERS = ("just now", "minute", "hour")
_DAYS_RE = re.compile(r"(\d+)\s+day")
_WEEKS_RE = re.compile(r"(\d+)\s+week")
_MONTHS_RE = re.compile(r"(\d+)\s+month")


class AgeUnit(str, Enum):
    RECENT = "recent"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    UNPARSEABLE = "unparseable"


_DAYS_PER_UNIT = {AgeUnit.RECENT: 0, AgeUnit.DAYS: 1, AgeUnit.WEEKS: 7, AgeUnit.MONTHS: 30}


@dataclass(frozen=True)
class AgeBucket:
    unit: AgeUnit
    count: int = 0

    @property
    def days(self) -> int | None:
        """Approximate age in days; None when the text could not be parsed."""
        per_unit = _DAYS_PER_UNIT.get(self.unit)
        if per_unit is None:
            return None
        return self.count * per_unit


def classify_age(text: str | None) -> AgeBucket:
    posted = (text or "").lower()

    if any(marker in posted for marker in _RECENT_MARKERS):
        return AgeBucket(AgeUnit.RECENT)

    for unit, pattern in ((AgeUnit.DAYS, _DAYS_RE), (AgeUnit.WEEKS, _WEEKS_RE), (AgeUnit.MONTHS, _MONTHS_RE)):
        m = pattern.search(posted)
        if m:
            return AgeBucket(unit, int(m.group(1)))

    return AgeBucket(AgeUnit.UNPARSEABLE)


def is_fresh(bucket: AgeBucket, max_age_days: int) -> bool:
    days = bucket.days
    return days is not None and days <= max_age_days


def filter_recent(outcomes: Iterable[Outcome], max_age_days: int) -> list[JobRecord]:
    """
    Keep JobRecords posted within `max_age_days`, in input order.
    FailedRecords carry no usable age and are always dropped here.
    """
    return [
        o for o in outcomes if isinstance(o, JobRecord) and is_fresh(classify_age(o.posted_ago), max_age_days)
    ]
