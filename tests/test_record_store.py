"""
Tests for status-change recording, the completion latch and data repair
"""

from datetime import date

import pytest

from perftrack.domain import Completion, StatusChange, TaskStatus
from perftrack.services.record_store import PerformanceRecordStore
from perftrack.storage import InMemoryRecordRepository, SqliteRecordRepository
from perftrack.utils.validation import InvalidInputError

from conftest import TASK_CREATED, TASK_DUE, utc


def change(store, status, when, user="alice", task="T1", due=TASK_DUE):
    return store.record_status_change(user, task, "alpha", status, due, TASK_CREATED, changed_at=when)


class TestRecordStatusChange:
    """Test history and completion latching"""

    def test_first_change_creates_record(self, store, repository):
        record = change(store, "inProgress", utc(2024, 1, 2))
        assert record.current_status is TaskStatus.IN_PROGRESS
        assert record.status_changes[0].working_days_from_start == 2
        assert record.created_at == utc(2024, 1, 2)
        assert repository.find_record("alice", "T1") is not None

    def test_completed_before_due_date(self, store, repository):
        change(store, "inProgress", utc(2024, 1, 2))
        record = change(store, "completed", utc(2024, 1, 4))

        assert record.completion_time == 4
        assert record.is_on_time is True
        stored = repository.find_record("alice", "T1")
        assert stored.completion_time == 4
        assert stored.is_on_time is True

    def test_completed_after_due_date(self, store):
        record = change(store, "completed", utc(2024, 1, 8))
        assert record.completion_time == 6
        assert record.is_on_time is False

    def test_completed_on_due_date_is_on_time(self, store):
        record = change(store, "completed", utc(2024, 1, 5, 23, 59))
        assert record.completion_time == 5
        assert record.is_on_time is True

    def test_completion_is_idempotent(self, store, repository):
        change(store, "completed", utc(2024, 1, 4))
        record = change(store, "completed", utc(2024, 1, 9))

        assert record.completion_time == 4
        assert record.is_on_time is True
        assert [c.status for c in record.status_changes] == [TaskStatus.COMPLETED, TaskStatus.COMPLETED]
        assert repository.find_record("alice", "T1").completion_time == 4

    def test_reopen_keeps_first_completion(self, store):
        change(store, "completed", utc(2024, 1, 4))
        change(store, "inProgress", utc(2024, 1, 5))
        record = change(store, "completed", utc(2024, 1, 10))

        assert record.completion_time == 4
        assert record.current_status is TaskStatus.COMPLETED
        assert len(record.status_changes) == 3

    def test_separate_users_are_separate_records(self, store, repository):
        change(store, "completed", utc(2024, 1, 4), user="alice")
        change(store, "completed", utc(2024, 1, 8), user="bob")
        assert repository.find_record("alice", "T1").is_on_time is True
        assert repository.find_record("bob", "T1").is_on_time is False

    def test_out_of_order_change_is_rejected(self, store, repository):
        change(store, "inProgress", utc(2024, 1, 4))
        with pytest.raises(InvalidInputError):
            change(store, "completed", utc(2024, 1, 3))
        assert not repository.find_record("alice", "T1").is_completed

    def test_invalid_status(self, store):
        with pytest.raises(InvalidInputError):
            change(store, "done", utc(2024, 1, 4))

    def test_defaults_to_clock(self, store):
        record = store.record_status_change("alice", "T1", "alpha", "inProgress", TASK_DUE, TASK_CREATED)
        assert record.status_changes[0].timestamp == utc(2024, 1, 15)
        # Mon 2024-01-01 .. Mon 2024-01-15
        assert record.status_changes[0].working_days_from_start == 11

    def test_lost_race_keeps_stored_completion(self, clock):
        class RacingRepository(InMemoryRecordRepository):
            """Another writer latches just before us"""

            def complete_if_pending(self, user, task, completion):
                super().complete_if_pending(user, task, Completion(3, True, utc(2024, 1, 3)))
                return super().complete_if_pending(user, task, completion)

        racing_store = PerformanceRecordStore(RacingRepository(), clock=clock)
        record = change(racing_store, "completed", utc(2024, 1, 8))
        assert record.completion_time == 3
        assert record.is_on_time is True

    def test_sqlite_repository(self, tmp_path, clock):
        sqlite_store = PerformanceRecordStore(SqliteRecordRepository(tmp_path / "p.db"), clock=clock)
        change(sqlite_store, "inProgress", utc(2024, 1, 2))
        change(sqlite_store, "completed", utc(2024, 1, 8))
        record = change(sqlite_store, "completed", utc(2024, 1, 9))
        assert record.completion_time == 6
        assert record.is_on_time is False


class TestDueDateChanges:
    """Test due-date synchronization"""

    def test_extension_makes_delivery_on_time(self, store, repository):
        change(store, "completed", utc(2024, 1, 8))
        records = store.update_due_date("T1", date(2024, 1, 10))

        assert len(records) == 1
        stored = repository.find_record("alice", "T1")
        assert stored.due_date == date(2024, 1, 10)
        assert stored.completion_time == 6
        assert stored.is_on_time is True

    def test_shortening_makes_delivery_late(self, store, repository):
        change(store, "completed", utc(2024, 1, 4))
        store.update_due_date("T1", "2024-01-02")
        stored = repository.find_record("alice", "T1")
        assert stored.completion_time == 4
        assert stored.is_on_time is False

    def test_open_records_only_get_new_due_date(self, store, repository):
        change(store, "inProgress", utc(2024, 1, 2), user="alice")
        change(store, "completed", utc(2024, 1, 4), user="bob")
        store.update_due_date("T1", date(2024, 1, 3))

        assert repository.find_record("alice", "T1").due_date == date(2024, 1, 3)
        assert not repository.find_record("alice", "T1").is_completed
        assert repository.find_record("bob", "T1").is_on_time is False

    def test_later_completion_uses_new_due_date(self, store):
        change(store, "inProgress", utc(2024, 1, 2))
        store.update_due_date("T1", date(2024, 1, 10))
        record = change(store, "completed", utc(2024, 1, 9), due=date(2024, 1, 10))
        assert record.is_on_time is True

    def test_due_date_and_punctuality_are_written_together(self, clock):
        class SingleWriteRepository(InMemoryRecordRepository):
            """Rejects separate record and punctuality writes once frozen"""
            frozen = False

            def upsert_record(self, record):
                assert not self.frozen, "record written separately"
                super().upsert_record(record)

            def update_punctuality(self, user, task, is_on_time):
                raise AssertionError("punctuality written separately")

        repository = SingleWriteRepository()
        single_store = PerformanceRecordStore(repository, clock=clock)
        change(single_store, "completed", utc(2024, 1, 8))
        repository.frozen = True

        single_store.update_due_date("T1", date(2024, 1, 10))
        stored = repository.find_record("alice", "T1")
        assert stored.due_date == date(2024, 1, 10)
        assert stored.is_on_time is True

    def test_sqlite_due_date_change(self, tmp_path, clock):
        repository = SqliteRecordRepository(tmp_path / "p.db")
        sqlite_store = PerformanceRecordStore(repository, clock=clock)
        change(sqlite_store, "completed", utc(2024, 1, 4))
        sqlite_store.update_due_date("T1", date(2024, 1, 2))

        stored = repository.find_record("alice", "T1")
        assert stored.due_date == date(2024, 1, 2)
        assert stored.completion_time == 4
        assert stored.is_on_time is False

    def test_unknown_task(self, store):
        assert store.update_due_date("missing", date(2024, 1, 10)) == []

    def test_remove_task(self, store, repository):
        change(store, "completed", utc(2024, 1, 4), user="alice")
        change(store, "inProgress", utc(2024, 1, 4), user="bob")
        assert store.remove_task("T1") == 2
        assert repository.find_records_by_task("T1") == []


class TestRepair:
    """Test detection and repair of inconsistent completion data"""

    def test_finds_inconsistent_records(self, make_record):
        records = [
            make_record(task="ok", completion_time=4, is_on_time=True),
            make_record(task="no-punctuality", completion_time=4),
            make_record(task="open"),
        ]
        inconsistent = PerformanceRecordStore.find_inconsistent_records(records)
        assert [r.task for r in inconsistent] == ["no-punctuality"]

    def test_repairs_missing_punctuality(self, store, repository):
        change(store, "inProgress", utc(2024, 1, 2))
        repository.complete_if_pending("alice", "T1", Completion(6, None, utc(2024, 1, 8)))

        report = store.repair_records()

        assert report.repaired_punctuality == 1
        assert report.integrity_percentage == 100.0
        assert repository.find_record("alice", "T1").is_on_time is False

    def test_restores_completion_time_from_history(self, store, repository, make_record):
        record = make_record()
        record.append_change(StatusChange(TaskStatus.IN_PROGRESS, utc(2024, 1, 2), 2))
        record.append_change(StatusChange(TaskStatus.COMPLETED, utc(2024, 1, 4), 4))
        repository.upsert_record(record)
        repository.complete_if_pending("alice", "T1", Completion(None, None, utc(2024, 1, 4)))

        report = store.repair_records("alice")

        assert report.repaired_completion_time == 1
        stored = repository.find_record("alice", "T1")
        assert stored.completion_time == 4
        assert stored.is_on_time is True

    def test_unrepairable_record(self, store, repository, make_record):
        repository.upsert_record(make_record())
        repository.complete_if_pending("alice", "T1", Completion(None, None))

        report = store.repair_records()

        assert report.repaired_completion_time == 0
        assert report.completed_records == 1
        assert report.valid_completed_records == 0
        assert report.integrity_percentage == 0.0

    def test_nothing_completed_is_full_integrity(self, store):
        report = store.repair_records()
        assert report.total_records == 0
        assert report.integrity_percentage == 100.0

    def test_status_change_heals_missing_punctuality(self, store, repository):
        change(store, "inProgress", utc(2024, 1, 2))
        repository.complete_if_pending("alice", "T1", Completion(4, None, utc(2024, 1, 4)))

        record = change(store, "underReview", utc(2024, 1, 5))

        assert record.is_on_time is True
        assert repository.find_record("alice", "T1").is_on_time is True
