#!/usr/bin/env python3
"""
Date helpers shared by the sync and calendar code.

All datetimes stored or compared by this project are naive UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from dateutil import parser as date_parser


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Union[datetime, date]) -> datetime:
    """
    Convert a date or datetime to a naive UTC datetime.

    Plain dates become UTC midnight, aware datetimes are converted to UTC,
    naive datetimes are assumed to already be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def parse_timestamp(ts_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp string to a naive UTC datetime.

    Args:
        ts_str: Timestamp string, e.g. '2024-05-01T15:00:00.000Z' or '2024-05-01'.

    Returns:
        Datetime object or None if the value is empty or unparseable.
    """
    if not ts_str:
        return None

    try:
        return to_naive_utc(date_parser.isoparse(str(ts_str)))
    except (ValueError, OverflowError):
        return None


def normalize_to_utc_midnight(value: Union[datetime, date]) -> datetime:
    """Truncate a date/datetime to midnight UTC."""
    return datetime.combine(to_naive_utc(value).date(), time.min)


def get_checkout_date(end: Union[datetime, date]) -> datetime:
    """
    Actual checkout day for an iCal end value.

    DTEND is exclusive in iCal, so the last occupied day is the day before.
    """
    return normalize_to_utc_midnight(end) - timedelta(days=1)


def format_date(value: Optional[datetime]) -> Optional[str]:
    """Format as YYYY-MM-DD, passing None through."""
    if value is None:
        return None
    return value.strftime('%Y-%m-%d')
