"""UTC-everywhere time handling for job scheduling and ERP dates."""

from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current calendar date in UTC."""
    return now_utc().date()


def seconds_from(moment: datetime, seconds: float) -> datetime:
    """
    Deadline `seconds` after `moment`.

    Raises ValueError if `moment` is naive (no timezone).
    """
    if moment.tzinfo is None:
        raise ValueError(
            "Cannot schedule from a naive datetime. Datetime must be timezone-aware."
        )
    return moment + timedelta(seconds=seconds)


def to_timestamp(moment: datetime) -> float:
    """
    POSIX timestamp for a timezone-aware datetime.

    Used as the score of scheduled jobs in sorted sets.
    """
    if moment.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )
    return moment.timestamp()


def from_timestamp(value: float) -> datetime:
    """UTC datetime for a POSIX timestamp."""
    return datetime.fromtimestamp(value, tz=timezone.utc)


def parse_erp_date(value: str | date | datetime) -> date:
    """
    Parse a date as ERPs send it.

    Accepts date objects, ISO dates ('2025-01-15') and ISO datetimes
    ('2025-01-15 10:30:00', '2025-01-15T10:30:00Z'). Time is discarded.

    Raises ValueError if the string is not an ISO date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) > 10:
        # Datetime strings: only the calendar part matters
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    return date.fromisoformat(text)
