"""Utility helpers for UTC time handling."""

from .timestamps import (
    ensure_utc,
    format_timestamp,
    minutes_to_timedelta,
    parse_iso_datetime,
    timedelta_to_minutes,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "minutes_to_timedelta",
    "timedelta_to_minutes",
]
