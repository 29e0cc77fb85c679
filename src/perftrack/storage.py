"""Storage layer for performance records and tracked tasks.

``RecordRepository`` is the persistence contract the services depend on.
Two implementations are provided: an in-memory repository for tests and
embedding, and a SQLite repository for the command-line application.

Both enforce the completion latch atomically through
``complete_if_pending``: only the first writer moves a record from not
completed to completed, and ``upsert_record`` never touches completion data.
"""

import copy
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .domain import Completion, PerformanceRecord, StatusChange, TrackedTask
from .utils.datetime import ensure_aware
from .utils.validation import coerce_date, coerce_datetime

logger = logging.getLogger(__name__)


class RecordRepository(ABC):
    """Persistence operations consumed by the performance services."""

    @abstractmethod
    def find_record(self, user: str, task: str) -> Optional[PerformanceRecord]:
        """Return the record for a (user, task) pair, or None."""

    @abstractmethod
    def upsert_record(self, record: PerformanceRecord) -> None:
        """Insert or update a record, leaving stored completion data alone."""

    @abstractmethod
    def complete_if_pending(self, user: str, task: str, completion: Completion) -> bool:
        """Atomically latch completion data.

        Returns:
            True if this call latched the record, False if it was already
            completed (or does not exist)
        """

    @abstractmethod
    def update_punctuality(self, user: str, task: str, is_on_time: bool) -> None:
        """Overwrite ``is_on_time`` of a completed record."""

    @abstractmethod
    def reschedule_record(self, user: str, task: str, due_date: date, updated_at: datetime,
                          is_on_time: Optional[bool] = None) -> None:
        """Set a record's due date and, when given, the punctuality of its completion in one write."""

    @abstractmethod
    def restore_completion_time(self, user: str, task: str, completion_time: int, is_on_time: bool) -> None:
        """Fill in the completion time of a completed record that lacks one."""

    @abstractmethod
    def find_records_by_task(self, task: str) -> List[PerformanceRecord]:
        """Return every record of a task."""

    @abstractmethod
    def find_records_by_user(self, user: str) -> List[PerformanceRecord]:
        """Return every record of a user, oldest first."""

    @abstractmethod
    def find_records_by_user_since(self, user: str, cutoff: datetime) -> List[PerformanceRecord]:
        """Return records of a user created at or after ``cutoff``."""

    @abstractmethod
    def find_all_records(self) -> List[PerformanceRecord]:
        """Return every stored record."""

    @abstractmethod
    def delete_records_for_task(self, task: str) -> int:
        """Delete all records of a task and return how many were removed."""

    @abstractmethod
    def save_task(self, task: TrackedTask) -> None:
        """Register or update a tracked task."""

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[TrackedTask]:
        """Return a tracked task, or None."""

    @abstractmethod
    def delete_task(self, task_id: str) -> bool:
        """Forget a tracked task. Returns True if it existed."""


class InMemoryRecordRepository(RecordRepository):
    """Dictionary-backed repository. Returned records are copies."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], PerformanceRecord] = {}
        self._tasks: Dict[str, TrackedTask] = {}
        self._lock = threading.Lock()

    def find_record(self, user: str, task: str) -> Optional[PerformanceRecord]:
        with self._lock:
            record = self._records.get((user, task))
            return copy.deepcopy(record) if record else None

    def upsert_record(self, record: PerformanceRecord) -> None:
        with self._lock:
            stored = self._records.get(record.key)
            snapshot = copy.deepcopy(record)
            if stored is not None:
                snapshot.completion = stored.completion
                snapshot.created_at = stored.created_at
            else:
                snapshot.completion = None
            self._records[record.key] = snapshot

    def complete_if_pending(self, user: str, task: str, completion: Completion) -> bool:
        with self._lock:
            stored = self._records.get((user, task))
            if stored is None or stored.completion is not None:
                return False
            stored.completion = completion
            return True

    def update_punctuality(self, user: str, task: str, is_on_time: bool) -> None:
        with self._lock:
            stored = self._records.get((user, task))
            if stored is not None and stored.completion is not None:
                stored.revise_punctuality(is_on_time)

    def reschedule_record(self, user: str, task: str, due_date: date, updated_at: datetime,
                          is_on_time: Optional[bool] = None) -> None:
        with self._lock:
            stored = self._records.get((user, task))
            if stored is None:
                return
            stored.due_date = due_date
            stored.updated_at = updated_at
            if is_on_time is not None and stored.completion is not None:
                stored.revise_punctuality(is_on_time)

    def restore_completion_time(self, user: str, task: str, completion_time: int, is_on_time: bool) -> None:
        with self._lock:
            stored = self._records.get((user, task))
            if stored is not None and stored.needs_completion_time_repair:
                stored.restore_completion(completion_time, is_on_time)

    def find_records_by_task(self, task: str) -> List[PerformanceRecord]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values() if r.task == task]

    def find_records_by_user(self, user: str) -> List[PerformanceRecord]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._records.values() if r.user == user]
        return sorted(records, key=lambda r: r.created_at)

    def find_records_by_user_since(self, user: str, cutoff: datetime) -> List[PerformanceRecord]:
        cutoff = ensure_aware(cutoff)
        return [r for r in self.find_records_by_user(user) if r.created_at >= cutoff]

    def find_all_records(self) -> List[PerformanceRecord]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._records.values()]
        return sorted(records, key=lambda r: r.created_at)

    def delete_records_for_task(self, task: str) -> int:
        with self._lock:
            keys = [key for key, r in self._records.items() if r.task == task]
            for key in keys:
                del self._records[key]
            return len(keys)

    def save_task(self, task: TrackedTask) -> None:
        with self._lock:
            self._tasks[task.task_id] = copy.deepcopy(task)

    def get_task(self, task_id: str) -> Optional[TrackedTask]:
        with self._lock:
            task = self._tasks.get(task_id)
            return copy.deepcopy(task) if task else None

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None


def _ts(value: datetime) -> str:
    """Fixed-width ISO timestamp so stored values sort lexicographically."""
    return ensure_aware(value).isoformat(timespec="microseconds")


class SqliteRecordRepository(RecordRepository):
    """Persistent storage for performance records in a SQLite database."""

    def __init__(self, db_path: Path):
        """Initialize the repository.

        Args:
            db_path: Path of the SQLite database file
        """
        self.db_path = Path(db_path)
        self.logger = logging.getLogger(__name__)

        self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_database(self):
        """Initialize the SQLite database with required tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._connect() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS performance_records (
                        user TEXT NOT NULL,
                        task TEXT NOT NULL,
                        project TEXT NOT NULL,
                        due_date TEXT NOT NULL,
                        task_created_at TEXT NOT NULL,
                        status_changes TEXT NOT NULL,  -- JSON list
                        is_completed INTEGER NOT NULL DEFAULT 0,
                        completion_time INTEGER,
                        is_on_time INTEGER,
                        completed_at TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        PRIMARY KEY (user, task)
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS tracked_tasks (
                        task_id TEXT PRIMARY KEY,
                        project TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        due_date TEXT NOT NULL
                    )
                """)

                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_records_user_created
                    ON performance_records(user, created_at)
                """)

                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_records_task
                    ON performance_records(task)
                """)

                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_records_completed_user
                    ON performance_records(is_completed, user)
                """)

                conn.commit()
                self.logger.debug(f"Initialized performance database at {self.db_path}")

        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize database: {e}")
            raise

    # Performance record operations

    def find_record(self, user: str, task: str) -> Optional[PerformanceRecord]:
        rows = self._query(
            "SELECT * FROM performance_records WHERE user = ? AND task = ?", (user, task)
        )
        return self._row_to_record(rows[0]) if rows else None

    def upsert_record(self, record: PerformanceRecord) -> None:
        history = json.dumps([change.to_dict() for change in record.status_changes])
        try:
            with self._connect() as conn:
                conn.execute("""
                    INSERT INTO performance_records
                    (user, task, project, due_date, task_created_at, status_changes,
                     created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user, task) DO UPDATE SET
                        project = excluded.project,
                        due_date = excluded.due_date,
                        task_created_at = excluded.task_created_at,
                        status_changes = excluded.status_changes,
                        updated_at = excluded.updated_at
                """, (
                    record.user,
                    record.task,
                    record.project,
                    record.due_date.isoformat(),
                    _ts(record.task_created_at),
                    history,
                    _ts(record.created_at),
                    _ts(record.updated_at),
                ))
                conn.commit()
                self.logger.debug(f"Saved performance record for user {record.user}, task {record.task}")

        except sqlite3.Error as e:
            self.logger.error(f"Failed to save performance record: {e}")
            raise

    def complete_if_pending(self, user: str, task: str, completion: Completion) -> bool:
        try:
            with self._connect() as conn:
                cursor = conn.execute("""
                    UPDATE performance_records
                    SET is_completed = 1, completion_time = ?, is_on_time = ?, completed_at = ?
                    WHERE user = ? AND task = ? AND is_completed = 0
                """, (
                    completion.completion_time,
                    None if completion.is_on_time is None else int(completion.is_on_time),
                    _ts(completion.completed_at) if completion.completed_at else None,
                    user,
                    task,
                ))
                conn.commit()
                return cursor.rowcount == 1

        except sqlite3.Error as e:
            self.logger.error(f"Failed to latch completion: {e}")
            raise

    def update_punctuality(self, user: str, task: str, is_on_time: bool) -> None:
        self._execute("""
            UPDATE performance_records SET is_on_time = ?
            WHERE user = ? AND task = ? AND is_completed = 1
        """, (int(is_on_time), user, task))

    def reschedule_record(self, user: str, task: str, due_date: date, updated_at: datetime,
                          is_on_time: Optional[bool] = None) -> None:
        on_time = None if is_on_time is None else int(is_on_time)
        self._execute("""
            UPDATE performance_records
            SET due_date = ?, updated_at = ?,
                is_on_time = CASE WHEN is_completed = 1 AND ? IS NOT NULL THEN ? ELSE is_on_time END
            WHERE user = ? AND task = ?
        """, (due_date.isoformat(), _ts(updated_at), on_time, on_time, user, task))

    def restore_completion_time(self, user: str, task: str, completion_time: int, is_on_time: bool) -> None:
        self._execute("""
            UPDATE performance_records SET completion_time = ?, is_on_time = ?
            WHERE user = ? AND task = ? AND is_completed = 1 AND completion_time IS NULL
        """, (completion_time, int(is_on_time), user, task))

    def find_records_by_task(self, task: str) -> List[PerformanceRecord]:
        rows = self._query(
            "SELECT * FROM performance_records WHERE task = ? ORDER BY created_at", (task,)
        )
        return [self._row_to_record(row) for row in rows]

    def find_records_by_user(self, user: str) -> List[PerformanceRecord]:
        rows = self._query(
            "SELECT * FROM performance_records WHERE user = ? ORDER BY created_at", (user,)
        )
        return [self._row_to_record(row) for row in rows]

    def find_records_by_user_since(self, user: str, cutoff: datetime) -> List[PerformanceRecord]:
        rows = self._query("""
            SELECT * FROM performance_records
            WHERE user = ? AND created_at >= ?
            ORDER BY created_at
        """, (user, _ts(cutoff)))
        return [self._row_to_record(row) for row in rows]

    def find_all_records(self) -> List[PerformanceRecord]:
        rows = self._query("SELECT * FROM performance_records ORDER BY created_at")
        return [self._row_to_record(row) for row in rows]

    def delete_records_for_task(self, task: str) -> int:
        deleted = self._execute("DELETE FROM performance_records WHERE task = ?", (task,))
        if deleted:
            self.logger.debug(f"Deleted {deleted} performance records for task {task}")
        return deleted

    # Tracked task operations

    def save_task(self, task: TrackedTask) -> None:
        self._execute("""
            INSERT OR REPLACE INTO tracked_tasks (task_id, project, created_at, due_date)
            VALUES (?, ?, ?, ?)
        """, (task.task_id, task.project, _ts(task.created_at), task.due_date.isoformat()))

    def get_task(self, task_id: str) -> Optional[TrackedTask]:
        rows = self._query("SELECT * FROM tracked_tasks WHERE task_id = ?", (task_id,))
        if not rows:
            return None
        row = rows[0]
        return TrackedTask(
            task_id=row['task_id'],
            project=row['project'],
            created_at=coerce_datetime(row['created_at'], 'created_at'),
            due_date=coerce_date(row['due_date'], 'due_date'),
        )

    def delete_task(self, task_id: str) -> bool:
        return self._execute("DELETE FROM tracked_tasks WHERE task_id = ?", (task_id,)) > 0

    # Helpers

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            with self._connect() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            self.logger.error(f"Failed to query performance database: {e}")
            raise

    def _execute(self, sql: str, params: tuple = ()) -> int:
        try:
            with self._connect() as conn:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.rowcount
        except sqlite3.Error as e:
            self.logger.error(f"Failed to update performance database: {e}")
            raise

    def _row_to_record(self, row: sqlite3.Row) -> PerformanceRecord:
        """Convert database row to PerformanceRecord."""
        completion = None
        if row['is_completed']:
            completion = Completion(
                completion_time=row['completion_time'],
                is_on_time=None if row['is_on_time'] is None else bool(row['is_on_time']),
                completed_at=coerce_datetime(row['completed_at'], 'completed_at', allow_none=True),
            )

        return PerformanceRecord(
            user=row['user'],
            task=row['task'],
            project=row['project'],
            due_date=coerce_date(row['due_date'], 'due_date'),
            task_created_at=coerce_datetime(row['task_created_at'], 'task_created_at'),
            status_changes=tuple(
                StatusChange.from_dict(item) for item in json.loads(row['status_changes'])
            ),
            completion=completion,
            created_at=coerce_datetime(row['created_at'], 'created_at'),
            updated_at=coerce_datetime(row['updated_at'], 'updated_at'),
        )
