"""Working-day calendar arithmetic.

A working day is Monday through Friday. There are no holiday exceptions.
Every function accepts dates or datetimes; datetimes are reduced to their
UTC calendar date first, so the time of day never changes a count.
"""

from datetime import date, timedelta
from typing import Optional

from .utils.datetime import DateLike, now_utc, to_utc_date

WORKING_DAYS_PER_WEEK = 5
SATURDAY = 5


def is_working_day(day: DateLike) -> bool:
    """Return True for Monday to Friday."""
    return to_utc_date(day).weekday() < SATURDAY


def count_working_days(start: DateLike, end: DateLike) -> int:
    """Count working days between two dates, both ends inclusive.

    Returns 0 when ``end`` falls before ``start``.
    """
    first = to_utc_date(start)
    last = to_utc_date(end)
    if last < first:
        return 0

    full_weeks, remainder = divmod((last - first).days + 1, 7)
    count = full_weeks * WORKING_DAYS_PER_WEEK

    tail_start = first + timedelta(days=full_weeks * 7)
    for offset in range(remainder):
        if is_working_day(tail_start + timedelta(days=offset)):
            count += 1
    return count


def next_working_day(day: DateLike) -> date:
    """Return the first working day strictly after ``day``."""
    candidate = to_utc_date(day) + timedelta(days=1)
    while not is_working_day(candidate):
        candidate += timedelta(days=1)
    return candidate


def previous_working_day(day: DateLike) -> date:
    """Return the last working day strictly before ``day``."""
    candidate = to_utc_date(day) - timedelta(days=1)
    while not is_working_day(candidate):
        candidate -= timedelta(days=1)
    return candidate


def working_days_from_start(start: DateLike, today: Optional[DateLike] = None) -> int:
    """Count working days from ``start`` up to and including today."""
    return count_working_days(start, today if today is not None else now_utc())


def is_task_overdue(
    due_date: DateLike,
    completed_on: Optional[DateLike] = None,
    today: Optional[DateLike] = None,
) -> bool:
    """Check whether a task is late, considering only working days.

    The comparison day is the completion day when given, otherwise today.
    A task only counts as overdue on a working day past its due date.
    """
    if completed_on is not None:
        compare = to_utc_date(completed_on)
    else:
        compare = to_utc_date(today if today is not None else now_utc())
    return compare > to_utc_date(due_date) and is_working_day(compare)


def expected_progress(start: DateLike, due_date: DateLike, today: Optional[DateLike] = None) -> float:
    """Percentage of the allowed working days already elapsed.

    Clamped to [0, 100]. A span with no working days is reported as done.
    """
    total = count_working_days(start, due_date)
    if total == 0:
        return 100.0

    elapsed = working_days_from_start(start, today)
    progress = elapsed / total * 100
    return min(max(progress, 0.0), 100.0)
