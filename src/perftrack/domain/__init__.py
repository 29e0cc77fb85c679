"""Domain models for perftrack."""

from .record import (
    TaskStatus,
    StatusChange,
    Completion,
    CompletionLatchError,
    TrackedTask,
    PerformanceRecord,
)
from .events import (
    TaskCreated,
    TaskStatusChanged,
    TaskDueDateChanged,
    TaskDeleted,
    parse_event,
)

__all__ = [
    "TaskStatus",
    "StatusChange",
    "Completion",
    "CompletionLatchError",
    "TrackedTask",
    "PerformanceRecord",
    "TaskCreated",
    "TaskStatusChanged",
    "TaskDueDateChanged",
    "TaskDeleted",
    "parse_event",
]
