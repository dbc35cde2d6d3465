"""Timestamp utilities for UTC handling and datetime parsing.

Every component of the dispatcher receives ``now`` explicitly; ``utc_now`` is
only called at the outer edges (CLI, scheduler, default arguments).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware datetimes are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Accepts ``2025-01-10T10:00:00Z``, ``2025-01-10T10:00:00+02:00``,
    ``2025-01-10T10:00:00.123456Z`` and bare dates.

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        try:
            return ensure_utc(datetime.strptime(cleaned, "%Y-%m-%d"))
        except ValueError:
            return None


def format_timestamp(dt: datetime, include_microseconds: bool = False) -> str:
    """Format a datetime as ISO 8601 string in UTC with a ``Z`` suffix.

    Example:
        >>> format_timestamp(datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc))
        '2025-01-10T10:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    if include_microseconds:
        return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def minutes_to_timedelta(minutes: Optional[int]) -> Optional[timedelta]:
    """Convert a stored reminder offset (whole minutes) to a timedelta."""
    if minutes is None:
        return None
    return timedelta(minutes=minutes)


def timedelta_to_minutes(offset: Optional[timedelta]) -> Optional[int]:
    """Convert a reminder offset to whole minutes for storage and display."""
    if offset is None:
        return None
    return int(offset.total_seconds() // 60)
