"""Tests for utils/timezone.py - UTC-everywhere time handling."""

from datetime import date, datetime, timezone

import pytest

from utils.timezone import (
    from_timestamp,
    now_utc,
    parse_erp_date,
    seconds_from,
    to_timestamp,
    today_utc,
)


class TestNowUtc:
    """Tests for now_utc()."""

    def test_returns_timezone_aware(self):
        """Result must have tzinfo set (not naive)."""
        assert now_utc().tzinfo is not None

    def test_is_utc(self):
        assert now_utc().tzinfo == timezone.utc

    def test_today_is_a_date(self):
        assert isinstance(today_utc(), date)


class TestSecondsFrom:

    def test_adds_seconds(self):
        start = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert seconds_from(start, 3600) == datetime(2025, 1, 1, 13, 0, tzinfo=timezone.utc)

    def test_raises_on_naive(self):
        """Naive datetime must raise ValueError."""
        with pytest.raises(ValueError, match="naive"):
            seconds_from(datetime(2025, 1, 1, 12, 0), 60)


class TestTimestamps:

    def test_round_trip(self):
        moment = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert from_timestamp(to_timestamp(moment)) == moment

    def test_raises_on_naive(self):
        with pytest.raises(ValueError, match="naive"):
            to_timestamp(datetime(2025, 1, 1))


class TestParseErpDate:
    """ERPs send dates, datetimes, and datetime strings."""

    @pytest.mark.parametrize("value", [
        "2025-01-15",
        "2025-01-15 10:30:00",
        "2025-01-15T10:30:00Z",
        " 2025-01-15 ",
        date(2025, 1, 15),
        datetime(2025, 1, 15, 23, 59),
    ])
    def test_accepted_forms(self, value):
        assert parse_erp_date(value) == date(2025, 1, 15)

    @pytest.mark.parametrize("value", ["15/01/2025", "yesterday", "2025-13-01"])
    def test_rejects_non_iso(self, value):
        with pytest.raises(ValueError):
            parse_erp_date(value)
