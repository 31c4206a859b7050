"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    today_utc,
    seconds_from,
    to_timestamp,
    from_timestamp,
    parse_erp_date,
)
