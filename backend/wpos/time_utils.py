# Overview: Time helpers; UTC instants in storage, outlet-local civil dates for queues and warranties.

"""
Instants (intake_at, paid_at, changed_at) are stored as naive UTC datetimes.
Civil dates (intake_date, due_date, warranty_expires_at) are plain dates; a
queue day or a warranty day is the date on the outlet's wall clock, so it
is derived with local_date() from the outlet timezone.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text to a naive UTC datetime; blank input gives None.

    Offsets (including a trailing Z) are converted to UTC; naive text is taken as UTC.
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


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a civil date in YYYY-MM-DD form. None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render an instant as ISO-8601 with a trailing Z, to the second (naive means UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def resolve_zone(name: Optional[str]) -> ZoneInfo:
    """Unknown or missing zone names fall back to UTC; outlet_service rejects them on write."""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def local_date(moment: datetime, tz_name: Optional[str]) -> date:
    """Civil date of a UTC-naive instant in the given IANA zone."""
    aware = moment.replace(tzinfo=timezone.utc) if moment.tzinfo is None else moment
    return aware.astimezone(resolve_zone(tz_name)).date()


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic; Jan 31 + 1 month clamps to the end of February."""
    return start + relativedelta(months=months)


def days_between(earlier: date, later: datetime) -> int:
    """Whole days elapsed from midnight of `earlier` to the UTC-naive instant `later`."""
    start = datetime(earlier.year, earlier.month, earlier.day)
    return (later - start).days
