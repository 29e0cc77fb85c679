"""Performance record data model for perftrack."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..utils.datetime import ensure_aware, now_utc, to_iso_string
from ..utils.validation import InvalidInputError, coerce_date, coerce_datetime
from ..working_days import count_working_days


class TaskStatus(Enum):
    """Task status states."""
    PENDING = "pending"
    ON_HOLD = "onHold"
    IN_PROGRESS = "inProgress"
    UNDER_REVIEW = "underReview"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        """Validate a status coming from outside the engine.

        Accepts enum members, wire values ("inProgress") and member names in
        any case ("in_progress", "IN_PROGRESS").
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for status in cls:
                if text == status.value or text.upper() == status.name:
                    return status
        raise InvalidInputError(
            f"Unknown task status: {value!r}",
            "status",
            value,
            [f"Use one of: {', '.join(s.value for s in cls)}"],
        )


class CompletionLatchError(RuntimeError):
    """Raised when a record that is already completed is latched again."""


@dataclass(frozen=True)
class StatusChange:
    """A single entry of the append-only status history."""
    status: TaskStatus
    timestamp: datetime
    working_days_from_start: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'timestamp': to_iso_string(self.timestamp),
            'working_days_from_start': self.working_days_from_start,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusChange":
        return cls(
            status=TaskStatus.parse(data['status']),
            timestamp=coerce_datetime(data['timestamp'], 'timestamp'),
            working_days_from_start=int(data['working_days_from_start']),
        )


@dataclass(frozen=True)
class Completion:
    """Completion data, fixed when the record is first completed.

    ``is_on_time`` may only change through an explicit due-date correction.
    Either value being None on a stored completion means the stored data is
    corrupt.
    """
    completion_time: Optional[int]  # working days
    is_on_time: Optional[bool]
    completed_at: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return self.completion_time is not None and self.is_on_time is not None


@dataclass
class TrackedTask:
    """The engine's view of a task owned by the task-management system."""
    task_id: str
    project: str
    created_at: datetime
    due_date: date

    def __post_init__(self):
        self.created_at = ensure_aware(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'project': self.project,
            'created_at': to_iso_string(self.created_at),
            'due_date': to_iso_string(self.due_date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackedTask":
        return cls(
            task_id=str(data['task_id']),
            project=str(data['project']),
            created_at=coerce_datetime(data['created_at'], 'created_at'),
            due_date=coerce_date(data['due_date'], 'due_date'),
        )


@dataclass
class PerformanceRecord:
    """Status history and completion data for one (user, task) pair."""

    # Identification
    user: str
    task: str
    project: str

    # Owning task data
    due_date: date
    task_created_at: datetime

    # History and completion latch
    status_changes: Tuple[StatusChange, ...] = ()
    completion: Optional[Completion] = None

    # Metadata
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def __post_init__(self):
        self.task_created_at = ensure_aware(self.task_created_at)
        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)
        self.status_changes = tuple(self.status_changes)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user, self.task)

    @property
    def is_completed(self) -> bool:
        return self.completion is not None

    @property
    def completion_time(self) -> Optional[int]:
        return self.completion.completion_time if self.completion else None

    @property
    def is_on_time(self) -> Optional[bool]:
        return self.completion.is_on_time if self.completion else None

    @property
    def has_valid_completion(self) -> bool:
        """True when the record can take part in completion metrics."""
        return self.completion is not None and self.completion.is_valid

    @property
    def needs_punctuality_repair(self) -> bool:
        """Completed with a completion time but punctuality never decided."""
        return (
            self.completion is not None
            and self.completion.completion_time is not None
            and self.completion.is_on_time is None
        )

    @property
    def allowed_working_days(self) -> int:
        """Working days the task may take, from creation up to its due date."""
        return count_working_days(self.task_created_at, self.due_date)

    @property
    def needs_completion_time_repair(self) -> bool:
        """Completed but the completion time was never stored."""
        return self.completion is not None and self.completion.completion_time is None

    @property
    def first_completed_change(self) -> Optional[StatusChange]:
        for change in self.status_changes:
            if change.status is TaskStatus.COMPLETED:
                return change
        return None

    @property
    def current_status(self) -> Optional[TaskStatus]:
        return self.status_changes[-1].status if self.status_changes else None

    def append_change(self, change: StatusChange) -> None:
        """Append a status change, keeping timestamps non-decreasing."""
        if self.status_changes and change.timestamp < self.status_changes[-1].timestamp:
            raise InvalidInputError(
                f"Status change at {change.timestamp.isoformat()} precedes the last "
                f"recorded change for task {self.task}",
                "timestamp",
                change.timestamp,
            )
        self.status_changes = self.status_changes + (change,)
        self.updated_at = change.timestamp

    def mark_completed(self, completion_time: int, is_on_time: bool,
                       completed_at: Optional[datetime] = None) -> None:
        """Latch the completion data. Allowed exactly once."""
        if self.completion is not None:
            raise CompletionLatchError(
                f"Record for user {self.user} and task {self.task} is already completed"
            )
        self.completion = Completion(
            completion_time=completion_time,
            is_on_time=is_on_time,
            completed_at=ensure_aware(completed_at) if completed_at else now_utc(),
        )

    def revise_punctuality(self, is_on_time: bool) -> None:
        """Replace ``is_on_time`` after a due-date correction or repair."""
        if self.completion is None:
            raise CompletionLatchError(
                f"Record for user {self.user} and task {self.task} is not completed"
            )
        self.completion = replace(self.completion, is_on_time=is_on_time)

    def restore_completion(self, completion_time: int, is_on_time: bool) -> None:
        """Fill in a completion time that was never stored."""
        if not self.needs_completion_time_repair:
            raise CompletionLatchError(
                f"Record for user {self.user} and task {self.task} has no missing completion time"
            )
        self.completion = replace(
            self.completion, completion_time=completion_time, is_on_time=is_on_time
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'user': self.user,
            'task': self.task,
            'project': self.project,
            'due_date': to_iso_string(self.due_date),
            'task_created_at': to_iso_string(self.task_created_at),
            'status_changes': [change.to_dict() for change in self.status_changes],
            'completion_time': self.completion_time,
            'is_completed': self.is_completed,
            'is_on_time': self.is_on_time,
            'completed_at': to_iso_string(self.completion.completed_at) if self.completion else None,
            'created_at': to_iso_string(self.created_at),
            'updated_at': to_iso_string(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceRecord":
        """Rebuild a record from its serialized form."""
        completion = None
        if data.get('is_completed'):
            completion = Completion(
                completion_time=data.get('completion_time'),
                is_on_time=data.get('is_on_time'),
                completed_at=coerce_datetime(data.get('completed_at'), 'completed_at', allow_none=True),
            )
        return cls(
            user=str(data['user']),
            task=str(data['task']),
            project=str(data['project']),
            due_date=coerce_date(data['due_date'], 'due_date'),
            task_created_at=coerce_datetime(data['task_created_at'], 'task_created_at'),
            status_changes=tuple(StatusChange.from_dict(c) for c in data.get('status_changes', [])),
            completion=completion,
            created_at=coerce_datetime(data.get('created_at') or now_utc(), 'created_at'),
            updated_at=coerce_datetime(data.get('updated_at') or now_utc(), 'updated_at'),
        )
