from __future__ import annotations

from datetime import date, datetime
from typing import Optional


def parse_retry_after(value, default: int = 1) -> int:
    """Parse a Retry-After header given in whole seconds.

    Falls back to ``default`` for missing, negative or non-numeric values
    (HTTP-date forms are not used by the registry).
    """
    if value is None:
        return default
    s = str(value).strip()
    if not s:
        return default
    try:
        seconds = int(s)
    except ValueError:
        return default
    return seconds if seconds >= 0 else default


def parse_iso_date(value) -> Optional[date]:
    """Parse 'YYYY-MM-DD' (optionally with a time part) into a date.

    Returns None for unparsable inputs.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def whole_years_between(start: Optional[date], end: date) -> Optional[int]:
    """Calendar-year difference (end.year - start.year), None when start is unknown."""
    if start is None:
        return None
    return end.year - start.year
