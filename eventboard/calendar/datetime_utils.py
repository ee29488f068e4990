"""DateTime helpers for calendar processing.

Every instant handled by eventboard is a timezone-aware UTC datetime. These
helpers are the only place where naive values and bare dates are turned into
instants.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional, Union

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware.

    Args:
        dt: Datetime to make timezone-aware

    Returns:
        Timezone-aware datetime (UTC if originally naive)
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: datetime) -> datetime:
    """Convert any datetime to an aware UTC datetime, treating naive values as UTC."""
    return ensure_timezone_aware(dt).astimezone(timezone.utc)


def now_utc() -> datetime:
    """Return the real current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_instant(value: Union[date, datetime]) -> tuple[datetime, bool]:
    """Turn an iCalendar DATE or DATE-TIME value into an absolute instant.

    Args:
        value: Decoded DTSTART/DTEND value

    Returns:
        Tuple of (UTC instant, is_all_day). Bare dates map to midnight UTC and
        are flagged all-day.

    Raises:
        TypeError: If value is neither a date nor a datetime
    """
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return to_utc(value), False
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc), True
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def parse_instant(value: str) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime.

    Accepts a trailing ``Z`` or an explicit offset; naive strings are taken as UTC.

    Raises:
        ValueError: If the string is not a valid ISO 8601 date-time
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Empty date-time string")
    dt = date_parser.isoparse(value.strip())
    return to_utc(dt)


def serialize_datetime_utc(dt: datetime) -> str:
    """Serialize datetime to ISO 8601 UTC string with Z suffix.

    Examples:
        >>> serialize_datetime_utc(datetime(2024, 11, 4, 16, 30, tzinfo=timezone.utc))
        '2024-11-04T16:30:00Z'
    """
    return to_utc(dt).isoformat().replace("+00:00", "Z")


def serialize_datetime_optional(dt: Optional[datetime]) -> Optional[str]:
    """Serialize optional datetime, returning None if input is None."""
    return serialize_datetime_utc(dt) if dt is not None else None


def month_window(instant: datetime, months_back: int = 1, months_ahead: int = 2) -> tuple[datetime, datetime]:
    """Compute the feed window around an instant.

    The window starts on the first day of the month ``months_back`` before the
    instant's month and ends (exclusive) on the first day of the month
    ``months_ahead`` after it.

    Examples:
        >>> start, end = month_window(datetime(2025, 1, 15, tzinfo=timezone.utc))
        >>> start.date(), end.date()
        (datetime.date(2024, 12, 1), datetime.date(2025, 3, 1))
    """
    instant = to_utc(instant)
    month_index = instant.year * 12 + (instant.month - 1)

    def _first_of(index: int) -> datetime:
        return datetime(index // 12, index % 12 + 1, 1, tzinfo=timezone.utc)

    return _first_of(month_index - months_back), _first_of(month_index + months_ahead)
