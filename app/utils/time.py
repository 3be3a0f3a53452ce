"""Utility functions for time handling.

Persisted timestamps are UTC, timezone-aware, and stored as ISO-8601 strings
with offsets (e.g. "+00:00"). Schedule arithmetic works on epoch seconds.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime as _format_http_date
from typing import Any

SECONDS_PER_DAY = 86_400


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now(*, timespec: str | None = None) -> str:
    """Return current UTC time as an ISO8601 string (timezone-aware)."""
    now = utc_now()
    if timespec:
        return now.isoformat(timespec=timespec)
    return now.isoformat()


def from_timestamp(ts: float) -> datetime:
    """Convert epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def epoch_day(ts: float) -> int:
    """Index of the 86,400-second epoch day containing ``ts``."""
    return int(ts // SECONDS_PER_DAY)


def http_date(dt: datetime) -> str:
    """Render a datetime as an RFC 7231 HTTP-date (always GMT)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return _format_http_date(dt.astimezone(timezone.utc), usegmt=True)


def isoformat_or_none(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Args:
        value: ISO string, epoch seconds or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return from_timestamp(float(value))
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    else:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed
