"""Lifecycle of per-(user, task) performance records.

Every status transition is appended to the record's history together with
the number of working days elapsed since the task was created. The first
transition to ``completed`` latches the completion time and punctuality;
later completions never change them (first completion wins).
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..domain import Completion, PerformanceRecord, StatusChange, TaskStatus
from ..storage import RecordRepository
from ..utils.datetime import now_utc, round_half_up
from ..utils.validation import coerce_date, coerce_datetime
from ..working_days import count_working_days

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    """Outcome of a data integrity repair run"""
    total_records: int
    completed_records: int
    valid_completed_records: int
    repaired_punctuality: int
    repaired_completion_time: int

    @property
    def integrity_percentage(self) -> float:
        if self.completed_records == 0:
            return 100.0
        return round_half_up(self.valid_completed_records / self.completed_records * 100)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_records': self.total_records,
            'completed_records': self.completed_records,
            'valid_completed_records': self.valid_completed_records,
            'repaired_punctuality': self.repaired_punctuality,
            'repaired_completion_time': self.repaired_completion_time,
            'integrity_percentage': self.integrity_percentage,
        }


class PerformanceRecordStore:
    """Records status transitions and keeps completion data consistent."""

    def __init__(self, repository: RecordRepository, clock: Callable[[], datetime] = now_utc):
        self.repository = repository
        self.clock = clock

    def record_status_change(
        self,
        user: str,
        task: str,
        project: str,
        new_status: Any,
        due_date: Any,
        task_created_at: Any,
        changed_at: Optional[Any] = None,
    ) -> PerformanceRecord:
        """Append a status transition to the (user, task) record.

        Args:
            user: User who moved the task
            task: Task identifier
            project: Project owning the task
            new_status: The new TaskStatus (or its wire value)
            due_date: Current due date of the task
            task_created_at: Creation instant of the task
            changed_at: When the transition happened (defaults to now)

        Returns:
            The record as it stands after the transition
        """
        status = TaskStatus.parse(new_status)
        due = coerce_date(due_date, 'due_date')
        created = coerce_datetime(task_created_at, 'task_created_at')
        now = coerce_datetime(changed_at, 'changed_at') if changed_at is not None else self.clock()

        record = self.repository.find_record(user, task)
        if record is None:
            record = PerformanceRecord(
                user=user,
                task=task,
                project=project,
                due_date=due,
                task_created_at=created,
                created_at=now,
                updated_at=now,
            )
            logger.info(f"Started performance tracking for user {user} on task {task}")

        working_days = count_working_days(created, now)
        record.append_change(StatusChange(status=status, timestamp=now,
                                          working_days_from_start=working_days))
        self.repository.upsert_record(record)
        logger.debug(f"Task {task} moved to {status.value} by {user} after {working_days} working days")

        if status is TaskStatus.COMPLETED and not record.is_completed:
            self._latch_completion(record, working_days, created, due, now)
        elif record.needs_punctuality_repair:
            self._repair_punctuality(record, created)

        return record

    def _latch_completion(self, record: PerformanceRecord, completion_time: int,
                          task_created_at: datetime, due_date: date, now: datetime) -> None:
        is_on_time = completion_time <= count_working_days(task_created_at, due_date)
        completion = Completion(completion_time=completion_time, is_on_time=is_on_time, completed_at=now)

        if self.repository.complete_if_pending(record.user, record.task, completion):
            record.mark_completed(completion_time, is_on_time, completed_at=now)
            logger.info(
                f"Task {record.task} completed by {record.user} in {completion_time} working days "
                f"({'on time' if is_on_time else 'late'})"
            )
            return

        # Another writer latched first; its values stand.
        stored = self.repository.find_record(record.user, record.task)
        if stored is not None:
            record.completion = stored.completion
        logger.warning(
            f"Completion of task {record.task} for {record.user} was already recorded; keeping stored values"
        )

    def _repair_punctuality(self, record: PerformanceRecord, task_created_at: datetime) -> None:
        is_on_time = record.completion_time <= count_working_days(task_created_at, record.due_date)
        self.repository.update_punctuality(record.user, record.task, is_on_time)
        record.revise_punctuality(is_on_time)
        logger.warning(
            f"Recomputed missing punctuality for user {record.user}, task {record.task}: {is_on_time}"
        )

    def update_due_date(self, task: str, new_due_date: Any,
                        task_created_at: Optional[Any] = None) -> List[PerformanceRecord]:
        """Synchronize a task's new due date into all of its records.

        Completed records get ``is_on_time`` recomputed from their stored
        completion time; the completion time itself is never touched.
        """
        due = coerce_date(new_due_date, 'new_due_date')
        created = coerce_datetime(task_created_at, 'task_created_at', allow_none=True)

        records = self.repository.find_records_by_task(task)
        for record in records:
            record.due_date = due
            record.updated_at = max(self.clock(), record.updated_at)

            is_on_time = None
            if record.is_completed and record.completion_time is not None:
                origin = created or record.task_created_at
                is_on_time = record.completion_time <= count_working_days(origin, due)

            self.repository.reschedule_record(record.user, record.task, due, record.updated_at, is_on_time)
            if is_on_time is not None:
                record.revise_punctuality(is_on_time)

        logger.info(f"Updated due date of {len(records)} performance records for task {task}")
        return records

    def remove_task(self, task: str) -> int:
        """Delete every record of a task, as a cascade of its deletion."""
        deleted = self.repository.delete_records_for_task(task)
        logger.info(f"Removed {deleted} performance records for deleted task {task}")
        return deleted

    @staticmethod
    def find_inconsistent_records(records: Iterable[PerformanceRecord]) -> List[PerformanceRecord]:
        """Completed records that cannot take part in completion metrics."""
        inconsistent = [r for r in records if r.is_completed and not r.has_valid_completion]
        for record in inconsistent:
            logger.warning(
                f"Inconsistent performance record for user {record.user}, task {record.task}: "
                f"completion_time={record.completion_time}, is_on_time={record.is_on_time}"
            )
        return inconsistent

    def repair_records(self, user: Optional[str] = None) -> RepairReport:
        """Recompute missing completion data from the stored history."""
        if user is None:
            records = self.repository.find_all_records()
        else:
            records = self.repository.find_records_by_user(user)

        repaired_punctuality = 0
        repaired_completion_time = 0
        for record in self.find_inconsistent_records(records):
            allowed = count_working_days(record.task_created_at, record.due_date)

            if record.needs_punctuality_repair:
                is_on_time = record.completion_time <= allowed
                self.repository.update_punctuality(record.user, record.task, is_on_time)
                record.revise_punctuality(is_on_time)
                repaired_punctuality += 1
                continue

            change = record.first_completed_change
            if change is None:
                logger.warning(
                    f"Cannot repair record for user {record.user}, task {record.task}: "
                    f"no completed status in history"
                )
                continue

            completion_time = change.working_days_from_start
            is_on_time = completion_time <= allowed
            self.repository.restore_completion_time(record.user, record.task, completion_time, is_on_time)
            record.restore_completion(completion_time, is_on_time)
            repaired_completion_time += 1

        completed = [r for r in records if r.is_completed]
        report = RepairReport(
            total_records=len(records),
            completed_records=len(completed),
            valid_completed_records=sum(1 for r in completed if r.has_valid_completion),
            repaired_punctuality=repaired_punctuality,
            repaired_completion_time=repaired_completion_time,
        )
        logger.info(
            f"Repair finished: {report.repaired_punctuality} punctuality and "
            f"{report.repaired_completion_time} completion time fixes, "
            f"integrity {report.integrity_percentage}%"
        )
        return report
