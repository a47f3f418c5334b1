from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Terminal 'now' in UTC (naive, canonical). Services take it as an injectable clock."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a UTC-naive datetime.

    - None / "" -> None
    - naive values are already UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_day_bound(value, *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Read an offer window bound given as datetime, date or ISO string.

    A bare date covers the whole day: as a start bound it means 00:00, as an
    end bound it runs until 23:59:59.999999. Raises ValueError on junk.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)
    text = str(value).strip()
    if len(text) == 10:
        return parse_day_bound(date.fromisoformat(text), end_of_day=end_of_day)
    return parse_iso_datetime(text)


def day_window(day: date) -> tuple[datetime, datetime]:
    """Half-open [00:00, next 00:00) range used for daily listings and reports."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 with trailing 'Z'; naive values are treated as UTC.

    Microseconds are kept so activity stamps survive a save/load cycle.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
