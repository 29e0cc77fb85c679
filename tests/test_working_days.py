"""
Unit tests for working-day calendar arithmetic
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from perftrack.working_days import (
    count_working_days,
    expected_progress,
    is_task_overdue,
    is_working_day,
    next_working_day,
    previous_working_day,
    working_days_from_start,
)

MONDAY = date(2024, 1, 1)
FRIDAY = date(2024, 1, 5)
SATURDAY = date(2024, 1, 6)
SUNDAY = date(2024, 1, 7)
NEXT_MONDAY = date(2024, 1, 8)


class TestIsWorkingDay:
    """Test working day detection"""

    def test_weekdays_are_working_days(self):
        for offset in range(5):
            assert is_working_day(MONDAY + timedelta(days=offset))

    def test_weekend_is_not(self):
        assert not is_working_day(SATURDAY)
        assert not is_working_day(SUNDAY)

    def test_datetime_uses_utc_date(self):
        """Saturday 01:00 at UTC+5 is still Friday in UTC"""
        plus_five = timezone(timedelta(hours=5))
        assert is_working_day(datetime(2024, 1, 6, 1, 0, tzinfo=plus_five))


class TestCountWorkingDays:
    """Test inclusive working-day counting"""

    def test_full_week(self):
        assert count_working_days(MONDAY, FRIDAY) == 5

    def test_weekend_adds_nothing(self):
        assert count_working_days(MONDAY, SUNDAY) == 5

    def test_weekend_only(self):
        assert count_working_days(SATURDAY, SUNDAY) == 0

    def test_same_working_day_counts_once(self):
        assert count_working_days(MONDAY, MONDAY) == 1

    def test_reversed_range_is_zero(self):
        assert count_working_days(FRIDAY, MONDAY) == 0

    def test_across_weekend(self):
        assert count_working_days(MONDAY, NEXT_MONDAY) == 6
        assert count_working_days(FRIDAY, NEXT_MONDAY) == 2

    def test_two_weeks(self):
        assert count_working_days(MONDAY, date(2024, 1, 14)) == 10

    def test_time_of_day_is_ignored(self):
        start = datetime(2024, 1, 1, 23, 59, tzinfo=timezone.utc)
        end = datetime(2024, 1, 5, 0, 1, tzinfo=timezone.utc)
        assert count_working_days(start, end) == 5

    def test_naive_datetimes_are_utc(self):
        assert count_working_days(datetime(2024, 1, 1, 8), datetime(2024, 1, 4, 17)) == 4

    def test_matches_day_by_day_count(self):
        """Closed form agrees with walking the calendar"""
        origin = date(2023, 12, 27)
        for start_offset in range(7):
            start = origin + timedelta(days=start_offset)
            for length in range(0, 40, 3):
                end = start + timedelta(days=length)
                walked = sum(
                    1 for i in range(length + 1)
                    if (start + timedelta(days=i)).weekday() < 5
                )
                assert count_working_days(start, end) == walked

    def test_leap_day(self):
        # Wed 2024-02-28 .. Mon 2024-03-04
        assert count_working_days(date(2024, 2, 28), date(2024, 3, 4)) == 4


class TestNeighbouringWorkingDays:
    """Test next/previous working day"""

    def test_next_after_friday_is_monday(self):
        assert next_working_day(FRIDAY) == NEXT_MONDAY

    def test_next_midweek(self):
        assert next_working_day(MONDAY) == date(2024, 1, 2)

    def test_previous_before_monday_is_friday(self):
        assert previous_working_day(NEXT_MONDAY) == FRIDAY

    def test_previous_from_sunday(self):
        assert previous_working_day(SUNDAY) == FRIDAY


class TestProgressHelpers:
    """Test overdue and progress helpers"""

    def test_working_days_from_start(self):
        assert working_days_from_start(MONDAY, today=date(2024, 1, 3)) == 3

    def test_completed_after_due_is_overdue(self):
        assert is_task_overdue(FRIDAY, completed_on=NEXT_MONDAY)

    def test_completed_on_due_date_is_not_overdue(self):
        assert not is_task_overdue(FRIDAY, completed_on=FRIDAY)

    def test_weekend_after_due_is_not_overdue(self):
        assert not is_task_overdue(FRIDAY, today=SATURDAY)

    def test_open_task_checked_against_today(self):
        assert is_task_overdue(FRIDAY, today=date(2024, 1, 9))

    def test_expected_progress_midway(self):
        assert expected_progress(MONDAY, FRIDAY, today=date(2024, 1, 3)) == pytest.approx(60.0)

    def test_expected_progress_is_clamped(self):
        assert expected_progress(MONDAY, FRIDAY, today=date(2024, 1, 20)) == 100.0
        assert expected_progress(MONDAY, FRIDAY, today=date(2023, 12, 20)) == 0.0

    def test_expected_progress_without_working_days(self):
        assert expected_progress(SATURDAY, SUNDAY, today=SATURDAY) == 100.0
