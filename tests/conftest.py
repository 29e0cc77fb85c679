"""Pytest configuration and shared fixtures."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from perftrack.config import ConfigModel  # noqa: E402
from perftrack.domain import Completion, PerformanceRecord  # noqa: E402
from perftrack.services.engine import PerformanceEngine  # noqa: E402
from perftrack.services.record_store import PerformanceRecordStore  # noqa: E402
from perftrack.storage import InMemoryRecordRepository  # noqa: E402

# Monday 2024-01-15, midday
FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

# Monday 2024-01-01 to Friday 2024-01-05: five allowed working days
TASK_CREATED = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
TASK_DUE = date(2024, 1, 5)


def utc(year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW"""
    return lambda: FIXED_NOW


@pytest.fixture
def repository():
    return InMemoryRecordRepository()


@pytest.fixture
def store(repository, clock):
    return PerformanceRecordStore(repository, clock=clock)


@pytest.fixture
def config(tmp_path):
    return ConfigModel(data_dir=str(tmp_path), repository="memory")


@pytest.fixture
def engine(repository, config, clock):
    return PerformanceEngine(repository, config=config, clock=clock)


@pytest.fixture
def make_record():
    """Factory for records with explicit completion data."""
    def _make(task="T1", user="alice", project="alpha", completion_time=None, is_on_time=None,
              completed=None, created_at=TASK_CREATED, task_created_at=TASK_CREATED, due_date=TASK_DUE):
        if completed is None:
            completed = completion_time is not None or is_on_time is not None
        completion = Completion(completion_time, is_on_time, created_at) if completed else None
        return PerformanceRecord(
            user=user,
            task=task,
            project=project,
            due_date=due_date,
            task_created_at=task_created_at,
            completion=completion,
            created_at=created_at,
            updated_at=created_at,
        )
    return _make
