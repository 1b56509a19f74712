"""
Calendar date rules.
Every comparison of a work-log date against "today" goes through this module
so the server-local calendar date is used, never a UTC slice.
"""
from datetime import date, datetime, timedelta
from typing import Optional, Union
import pytz

from ..config import settings
from ..errors import ValidationError


DateLike = Union[date, datetime, str]


def local_now(timezone_str: Optional[str] = None) -> datetime:
    """Current timezone-aware datetime in the server's local timezone."""
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(pytz.UTC).astimezone(tz)


def local_today(timezone_str: Optional[str] = None) -> date:
    """Current calendar date in the server's local timezone."""
    return local_now(timezone_str).date()


def to_calendar_date(value: DateLike, timezone_str: Optional[str] = None) -> date:
    """
    Extract a calendar date without timezone drift.

    Args:
        value: date, datetime or string
        timezone_str: Local timezone for aware datetimes (default from settings)

    Returns:
        The calendar date. Aware datetimes are converted to local time first,
        naive datetimes keep their own components, and strings contribute
        their leading YYYY-MM-DD verbatim.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            tz = pytz.timezone(timezone_str or settings.tz_default)
            value = value.astimezone(tz)
        return date(value.year, value.month, value.day)
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        head = value.strip()[:10]
        try:
            return date.fromisoformat(head)
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}")
    raise ValidationError(f"Invalid date: {value!r}")


def is_today(value: DateLike, timezone_str: Optional[str] = None) -> bool:
    return to_calendar_date(value, timezone_str) == local_today(timezone_str)


def week_start(value: date) -> date:
    """Sunday on or before the given date."""
    # date.weekday(): Monday=0 .. Sunday=6
    return value - timedelta(days=(value.weekday() + 1) % 7)


def month_start(value: date) -> date:
    return value.replace(day=1)
