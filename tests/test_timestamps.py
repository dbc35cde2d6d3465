"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone

import pytest

from fanout.utils.timestamps import (
    ensure_utc,
    format_timestamp,
    minutes_to_timedelta,
    parse_iso_datetime,
    timedelta_to_minutes,
    utc_now,
)


class TestUtcNow:
    """Tests for utc_now function."""

    def test_utc_now_returns_utc_datetime(self):
        """Test that utc_now returns a timezone-aware datetime in UTC."""
        now = utc_now()

        assert now.tzinfo == timezone.utc
        assert isinstance(now, datetime)

    def test_utc_now_is_recent(self):
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= now <= after


class TestEnsureUtc:
    """Tests for ensure_utc function."""

    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_datetime_assumed_utc(self):
        result = ensure_utc(datetime(2025, 1, 10, 10, 0))

        assert result == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)

    def test_aware_datetime_converted(self):
        """Test that other timezones are converted to UTC."""
        eastern = timezone(timedelta(hours=-5))

        result = ensure_utc(datetime(2025, 1, 10, 5, 0, tzinfo=eastern))

        assert result.tzinfo == timezone.utc
        assert result.hour == 10


class TestParseIsoDatetime:
    """Tests for parse_iso_datetime function."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("2025-01-10T10:00:00Z", datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)),
            ("2025-01-10T12:00:00+02:00", datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)),
            (
                "2025-01-10T10:00:00.123456Z",
                datetime(2025, 1, 10, 10, 0, 0, 123456, tzinfo=timezone.utc),
            ),
            ("2025-01-10T10:00:00", datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)),
            ("2025-01-10", datetime(2025, 1, 10, tzinfo=timezone.utc)),
            ("  2025-01-10T10:00:00Z  ", datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)),
        ],
    )
    def test_valid_formats(self, text, expected):
        assert parse_iso_datetime(text) == expected

    @pytest.mark.parametrize("text", [None, "", "   ", "tomorrow", "2025-13-45"])
    def test_invalid_returns_none(self, text):
        """Test that unparseable input yields None instead of raising."""
        assert parse_iso_datetime(text) is None


class TestFormatTimestamp:
    """Tests for format_timestamp function."""

    def test_format(self):
        dt = datetime(2025, 1, 10, 10, 0, 0, 500000, tzinfo=timezone.utc)

        assert format_timestamp(dt) == "2025-01-10T10:00:00Z"
        assert format_timestamp(dt, include_microseconds=True) == "2025-01-10T10:00:00.500000Z"

    def test_format_converts_to_utc(self):
        plus_two = timezone(timedelta(hours=2))

        assert format_timestamp(datetime(2025, 1, 10, 12, 0, tzinfo=plus_two)) == "2025-01-10T10:00:00Z"

    def test_round_trip(self):
        """Test formatted timestamps parse back to the same instant."""
        dt = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)

        assert parse_iso_datetime(format_timestamp(dt)) == dt


class TestOffsetConversion:
    """Tests for reminder offset conversion helpers."""

    def test_minutes_to_timedelta(self):
        assert minutes_to_timedelta(90) == timedelta(minutes=90)
        assert minutes_to_timedelta(0) == timedelta(0)
        assert minutes_to_timedelta(None) is None

    def test_timedelta_to_minutes(self):
        assert timedelta_to_minutes(timedelta(days=1)) == 1440
        assert timedelta_to_minutes(timedelta(minutes=15, seconds=59)) == 15
        assert timedelta_to_minutes(None) is None
