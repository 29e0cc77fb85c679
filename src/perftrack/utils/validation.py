"""Input validation for perftrack.

Everything that crosses the system boundary (event payloads, CLI arguments,
configuration values) is validated here before any computation begins.
"""

from datetime import date, datetime
from typing import Any, List, Optional

from .datetime import ensure_aware


class InvalidInputError(ValueError):
    """Exception raised when an input value is rejected."""

    def __init__(self, message: str, field_name: str, value: Any, suggestions: List[str] = None):
        self.field_name = field_name
        self.value = value
        self.suggestions = suggestions or []
        super().__init__(message)


def validate_period_days(value: Any, field_name: str = "period_days") -> int:
    """Validate a look-back period expressed in calendar days.

    Args:
        value: Number of days (int or numeric string)
        field_name: Name used in the error message

    Returns:
        The period as a non-negative int

    Raises:
        InvalidInputError: If the value is not an integer or is negative
    """
    if isinstance(value, bool):
        raise InvalidInputError(
            f"Field '{field_name}' must be an integer, got bool", field_name, value
        )

    try:
        period = int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(
            f"Field '{field_name}' must be an integer, got {value!r}",
            field_name,
            value,
            ["Pass the number of days as a whole number, e.g. 30"],
        ) from None

    if isinstance(value, float) and not value.is_integer():
        raise InvalidInputError(
            f"Field '{field_name}' must be a whole number of days, got {value}",
            field_name,
            value,
        )

    if period < 0:
        raise InvalidInputError(
            f"Field '{field_name}' cannot be negative, got {period}",
            field_name,
            value,
            ["Use 0 to evaluate only records created today"],
        )
    return period


def validate_month_year(month: Any, year: Any) -> tuple:
    """Validate a (month, year) pair for monthly reports.

    Returns:
        Tuple of (month, year) as ints
    """
    try:
        month_value = int(month)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Month must be an integer, got {month!r}", "month", month) from None
    try:
        year_value = int(year)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Year must be an integer, got {year!r}", "year", year) from None

    if not 1 <= month_value <= 12:
        raise InvalidInputError(
            f"Month must be between 1 and 12, got {month_value}", "month", month
        )
    if not 1 <= year_value <= 9999:
        raise InvalidInputError(
            f"Year must be between 1 and 9999, got {year_value}", "year", year
        )
    return month_value, year_value


def coerce_date(value: Any, field_name: str, allow_none: bool = False) -> Optional[date]:
    """Convert a date, datetime or ISO string into a calendar date.

    Datetimes are reduced to their UTC calendar date.

    Raises:
        InvalidInputError: If the value cannot be interpreted as a date
    """
    if value is None:
        if allow_none:
            return None
        raise InvalidInputError(f"Field '{field_name}' cannot be None", field_name, value)

    if isinstance(value, datetime):
        return ensure_aware(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if "T" in text or " " in text:
                return ensure_aware(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
            return date.fromisoformat(text)
        except ValueError:
            raise InvalidInputError(
                f"Field '{field_name}' is not a valid date: {value!r}",
                field_name,
                value,
                ["Use ISO format YYYY-MM-DD"],
            ) from None

    raise InvalidInputError(
        f"Field '{field_name}' must be a date, got {type(value).__name__}",
        field_name,
        value,
    )


def coerce_datetime(value: Any, field_name: str, allow_none: bool = False) -> Optional[datetime]:
    """Convert a datetime, date or ISO string into an aware UTC datetime.

    Plain dates are interpreted as midnight UTC.

    Raises:
        InvalidInputError: If the value cannot be interpreted as an instant
    """
    if value is None:
        if allow_none:
            return None
        raise InvalidInputError(f"Field '{field_name}' cannot be None", field_name, value)

    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return ensure_aware(datetime(value.year, value.month, value.day))
    if isinstance(value, str):
        try:
            return ensure_aware(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            raise InvalidInputError(
                f"Field '{field_name}' is not a valid datetime: {value!r}",
                field_name,
                value,
                ["Use ISO format YYYY-MM-DDTHH:MM:SS+00:00"],
            ) from None

    raise InvalidInputError(
        f"Field '{field_name}' must be a datetime, got {type(value).__name__}",
        field_name,
        value,
    )
