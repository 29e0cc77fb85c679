"""Datetime utilities with consistent UTC timezone handling.

All instants handled by perftrack are timezone-aware and expressed in UTC.
Working-day arithmetic operates on calendar dates, so this module also
provides the conversions from instants to UTC calendar dates.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

DateLike = Union[date, datetime]


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_utc_date(value: DateLike) -> date:
    """Reduce a date or datetime to its UTC calendar date."""
    if isinstance(value, datetime):
        return ensure_aware(value).date()
    return value


def start_of_day(day: date) -> datetime:
    """Return midnight UTC of the given calendar date."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    """Return the last representable instant of the given UTC calendar date."""
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def to_iso_string(dt: Optional[DateLike]) -> Optional[str]:
    """Convert a date or datetime to an ISO string.

    Args:
        dt: Date/datetime to convert, or None

    Returns:
        ISO format string (with timezone for datetimes), or None
    """
    if dt is None:
        return None

    if isinstance(dt, datetime):
        return ensure_aware(dt).isoformat()
    return dt.isoformat()


def round_half_up(value: float, places: int = 2) -> float:
    """Round like a spreadsheet does: halves go away from zero."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_up_int(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
