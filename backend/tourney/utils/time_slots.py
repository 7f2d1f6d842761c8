"""
Canonical parsers for schedule dates and clock times.

Inputs arrive as loosely-typed strings from persisted documents
("9:00", "2024-06-01", "2024-06-01T00:00:00.000Z", "") so every helper
degrades to a neutral value instead of raising.
"""
import re
from datetime import date, datetime
from typing import Any, List, Optional

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")
_YMD = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: Any) -> Optional[int]:
    """'H:MM' or 'HH:MM' -> minutes after midnight, None if not a clock time."""
    m = _HHMM.match(str(value or "").strip())
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def format_clock(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(start: Any, duration: Any) -> str:
    """
    Clock arithmetic for slot end times.

    Returns "" when either input is missing or malformed; wraps past midnight.
    """
    start_minutes = parse_clock(start)
    try:
        delta = int(float(duration))
    except (TypeError, ValueError):
        return ""
    if start_minutes is None or not delta:
        return ""
    return format_clock(start_minutes + delta)


def time_value(raw: Any) -> int:
    """Sort value for a match time: minutes after midnight, 0 when unset."""
    parsed = parse_clock(raw)
    return parsed if parsed is not None else 0


def canonical_date(raw: Any) -> str:
    """Normalize a date-ish value to 'YYYY-MM-DD', or '' when unparseable."""
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    s = str(raw or "").strip()
    m = _YMD.match(s)
    if not m:
        return ""
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3))).isoformat()
    except ValueError:
        return ""


def date_value(raw: Any) -> int:
    """Sort value for a match date: proleptic ordinal, 0 when unset or invalid."""
    canon = canonical_date(raw)
    if not canon:
        return 0
    return date.fromisoformat(canon).toordinal()


def parse_date_list(dates: Any) -> List[str]:
    """
    Normalize tournament dates to unique 'YYYY-MM-DD' strings, order kept.

    - None or "" -> []
    - String (e.g. "2024-06-01,2024-06-02") -> split on commas
    - List -> each item canonicalized; unparseable items dropped
    """
    if dates is None:
        return []
    if isinstance(dates, str):
        items = [x for x in dates.split(",")]
    elif isinstance(dates, (list, tuple)):
        items = list(dates)
    else:
        return []
    result: List[str] = []
    for item in items:
        canon = canonical_date(item)
        if canon and canon not in result:
            result.append(canon)
    return result
