from __future__ import annotations

import html
import json
from datetime import datetime, timezone
from typing import Any


def esc(s: str | None) -> str:
    """
    Escape text for HTML contexts (titles, URLs). Do NOT wrap or add tags.
    """
    if s is None:
        return ""
    return html.escape(str(s), quote=True)


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def file_stamp() -> str:
    """UTC timestamp safe for filenames, e.g. 20250101T000000Z."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def as_str_list(value: Any) -> list[str]:
    """
    Coerce kwargs input into a list of stripped strings.
    Accepts a real list, a JSON array string, or a comma-separated string.
    """
    if value is None:
        return []
    if isinstance(value, str):
        s = value.strip()
        if s.startswith("["):
            try:
                value = json.loads(s)
            except json.JSONDecodeError:
                value = [s]
        else:
            value = [part for part in s.split(",") if part.strip()]
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(v).strip() for v in value]
