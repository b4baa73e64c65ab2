from __future__ import annotations

import re
from collections.abc import Iterable

from .models import JobRecord

UNKNOWN = "Unknown"

# Letters/spaces after the final comma, anchored at the end: "Austin, TX, United States" -> "United States"
_TRAILING_REGION_RE = re.compile(r",\s*([A-Za-z\s]+)$")


def category_key(location: str | None) -> str:
    """Best-effort grouping label from free-text location; "Unknown" when nothing matches."""
    m = _TRAILING_REGION_RE.search(location or "")
    key = m.group(1).strip() if m else ""
    return key or UNKNOWN


def categorize(records: Iterable[JobRecord]) -> dict[str, list[JobRecord]]:
    """Group records by category_key, keeping input order inside each group."""
    out: dict[str, list[JobRecord]] = {}
    for record in records:
        out.setdefault(category_key(record.location), []).append(record)
    return out
