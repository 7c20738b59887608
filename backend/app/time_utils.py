from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert a UTC-naive datetime to an aware datetime in tz_name."""
    return dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))


def local_date(dt: datetime, tz_name: str) -> date:
    """Calendar day of a UTC-naive instant, as seen in tz_name."""
    return to_local(dt, tz_name).date()


def local_midnight_utc(dt: datetime, tz_name: str) -> datetime:
    """UTC-naive instant of the local midnight that starts dt's calendar day."""
    local = to_local(dt, tz_name)
    start = datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)
    return start.astimezone(timezone.utc).replace(tzinfo=None)


def parse_hhmm(value: str) -> time:
    """
    Parse a "HH:MM" wall-clock string.

    Raises ValueError for anything else.
    """
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"invalid HH:MM time: {value!r}") from exc


def local_time_today_utc(now: datetime, hhmm: str, tz_name: str) -> datetime:
    """
    UTC-naive instant of the wall-clock time hhmm on now's local calendar day.
    """
    local_now = to_local(now, tz_name)
    wall = datetime.combine(local_now.date(), parse_hhmm(hhmm), tzinfo=local_now.tzinfo)
    return wall.astimezone(timezone.utc).replace(tzinfo=None)
