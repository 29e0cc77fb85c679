"""Events consumed from the task-management system.

Payloads are validated here, at the boundary, so the services only ever see
well-typed values.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from ..utils.datetime import now_utc
from ..utils.validation import InvalidInputError, coerce_date, coerce_datetime
from .record import TaskStatus


def _require(data: Dict[str, Any], key: str) -> Any:
    if key not in data or data[key] in (None, ""):
        raise InvalidInputError(f"Missing required field '{key}'", key, data.get(key))
    return data[key]


@dataclass(frozen=True)
class TaskCreated:
    task_id: str
    project_id: str
    created_at: datetime
    due_date: date

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskCreated":
        return cls(
            task_id=str(_require(data, 'task_id')),
            project_id=str(_require(data, 'project_id')),
            created_at=coerce_datetime(_require(data, 'created_at'), 'created_at'),
            due_date=coerce_date(_require(data, 'due_date'), 'due_date'),
        )


@dataclass(frozen=True)
class TaskStatusChanged:
    """A user moved a task to a new status.

    ``due_date`` and ``task_created_at`` are optional; when missing the
    engine takes them from the registered task.
    """
    user_id: str
    task_id: str
    project_id: str
    new_status: TaskStatus
    timestamp: datetime
    due_date: Optional[date] = None
    task_created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskStatusChanged":
        timestamp = data.get('timestamp')
        return cls(
            user_id=str(_require(data, 'user_id')),
            task_id=str(_require(data, 'task_id')),
            project_id=str(_require(data, 'project_id')),
            new_status=TaskStatus.parse(_require(data, 'new_status')),
            timestamp=coerce_datetime(timestamp, 'timestamp') if timestamp else now_utc(),
            due_date=coerce_date(data.get('due_date'), 'due_date', allow_none=True),
            task_created_at=coerce_datetime(data.get('task_created_at'), 'task_created_at', allow_none=True),
        )


@dataclass(frozen=True)
class TaskDueDateChanged:
    task_id: str
    new_due_date: date

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskDueDateChanged":
        return cls(
            task_id=str(_require(data, 'task_id')),
            new_due_date=coerce_date(_require(data, 'new_due_date'), 'new_due_date'),
        )


@dataclass(frozen=True)
class TaskDeleted:
    task_id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskDeleted":
        return cls(task_id=str(_require(data, 'task_id')))


TaskEvent = Union[TaskCreated, TaskStatusChanged, TaskDueDateChanged, TaskDeleted]

EVENT_TYPES = {
    'TaskCreated': TaskCreated,
    'TaskStatusChanged': TaskStatusChanged,
    'TaskDueDateChanged': TaskDueDateChanged,
    'TaskDeleted': TaskDeleted,
}


def parse_event(data: Dict[str, Any]) -> TaskEvent:
    """Build an event from a payload carrying a ``type`` discriminator."""
    event_type = data.get('type')
    if event_type not in EVENT_TYPES:
        raise InvalidInputError(
            f"Unknown event type: {event_type!r}",
            'type',
            event_type,
            [f"Use one of: {', '.join(EVENT_TYPES)}"],
        )
    return EVENT_TYPES[event_type].from_dict(data)
