"""Performance engine: the explicit context that wires all services together.

Build one engine at process start with ``build_engine`` and pass it to
whatever needs it. It consumes task events from the task-management system
and answers metric, evaluation and report queries for users.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import ConfigModel
from ..domain import (
    PerformanceRecord,
    TaskCreated,
    TaskDeleted,
    TaskDueDateChanged,
    TaskStatusChanged,
    TrackedTask,
)
from ..domain.events import TaskEvent
from ..storage import InMemoryRecordRepository, RecordRepository, SqliteRecordRepository
from ..utils.datetime import now_utc
from ..utils.validation import InvalidInputError, coerce_date, coerce_datetime, validate_period_days
from .evaluation import AutomatedEvaluator, EvaluationResult
from .metrics import AggregatedMetrics, MetricsAggregator
from .predictions import PerformancePredictor, PredictionResult, ProjectBreakdown, project_breakdown
from .record_store import PerformanceRecordStore, RepairReport
from .reports import MonthlyReport, MonthlyReportGenerator
from .trend import ProductivityTrend, TrendAnalyzer

logger = logging.getLogger(__name__)


class TaskNotRegisteredError(LookupError):
    """A status change referenced a task the engine has never seen."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} is not registered; send TaskCreated first")


@dataclass
class UserEvaluation:
    """Metrics, trend and evaluation for one user over one period"""
    user: str
    period_days: int
    start: datetime
    end: datetime
    metrics: AggregatedMetrics
    trend: ProductivityTrend
    evaluation: EvaluationResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user': self.user,
            'evaluation_period': {
                'days': self.period_days,
                'start_date': self.start.isoformat(),
                'end_date': self.end.isoformat(),
            },
            'metrics': self.metrics.to_dict(),
            'productivity_trend': self.trend.value,
            'evaluation': self.evaluation.to_dict(),
            'is_automated': True,
        }


class PerformanceEngine:
    """Entry point for writes (task events) and reads (metrics, evaluations, reports)."""

    def __init__(
        self,
        repository: RecordRepository,
        config: Optional[ConfigModel] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.config = config or ConfigModel(repository="memory")
        self.repository = repository
        self.clock = clock

        self.store = PerformanceRecordStore(repository, clock=clock)
        self.aggregator = MetricsAggregator(clock=clock)
        self.trend_analyzer = TrendAnalyzer(
            clock=clock,
            window_days=self.config.trend_window_days,
            threshold=self.config.trend_threshold,
        )
        self.evaluator = AutomatedEvaluator()
        self.reports = MonthlyReportGenerator(
            self.aggregator, locale=self.config.report_locale, clock=clock
        )
        self.predictor = PerformancePredictor(clock=clock, months_ahead=self.config.prediction_months)

    # Events

    def handle(self, event: TaskEvent) -> Any:
        """Dispatch a task event to its handler."""
        if isinstance(event, TaskCreated):
            return self.register_task(event.task_id, event.project_id, event.created_at, event.due_date)
        if isinstance(event, TaskStatusChanged):
            return self._on_status_changed(event)
        if isinstance(event, TaskDueDateChanged):
            return self.update_due_date(event.task_id, event.new_due_date)
        if isinstance(event, TaskDeleted):
            return self.delete_task(event.task_id)
        raise InvalidInputError(f"Unsupported event: {event!r}", "event", event)

    def register_task(self, task_id: str, project: str, created_at: Any, due_date: Any) -> TrackedTask:
        task = TrackedTask(
            task_id=task_id,
            project=project,
            created_at=coerce_datetime(created_at, 'created_at'),
            due_date=coerce_date(due_date, 'due_date'),
        )
        self.repository.save_task(task)
        logger.debug(f"Registered task {task_id} in project {project}")
        return task

    def _on_status_changed(self, event: TaskStatusChanged) -> PerformanceRecord:
        task = self.repository.get_task(event.task_id)
        if task is None:
            if event.due_date is None or event.task_created_at is None:
                raise TaskNotRegisteredError(event.task_id)
            task = self.register_task(event.task_id, event.project_id,
                                      event.task_created_at, event.due_date)

        return self.store.record_status_change(
            user=event.user_id,
            task=event.task_id,
            project=event.project_id,
            new_status=event.new_status,
            due_date=event.due_date or task.due_date,
            task_created_at=event.task_created_at or task.created_at,
            changed_at=event.timestamp,
        )

    # Writes

    def record_status_change(self, user: str, task: str, project: str, new_status: Any,
                             due_date: Any, task_created_at: Any,
                             changed_at: Optional[Any] = None) -> PerformanceRecord:
        return self.store.record_status_change(
            user, task, project, new_status, due_date, task_created_at, changed_at
        )

    def update_due_date(self, task_id: str, new_due_date: Any) -> List[PerformanceRecord]:
        due = coerce_date(new_due_date, 'new_due_date')
        task = self.repository.get_task(task_id)
        created_at = None
        if task is not None:
            task.due_date = due
            self.repository.save_task(task)
            created_at = task.created_at
        return self.store.update_due_date(task_id, due, created_at)

    def delete_task(self, task_id: str) -> int:
        deleted = self.store.remove_task(task_id)
        self.repository.delete_task(task_id)
        return deleted

    def repair(self, user: Optional[str] = None) -> RepairReport:
        return self.store.repair_records(user)

    # Reads

    def _records_since(self, user: str, period_days: int) -> List[PerformanceRecord]:
        cutoff = self.clock() - timedelta(days=period_days)
        return self.repository.find_records_by_user_since(user, cutoff)

    def get_metrics(self, user: str, period_days: Any = None) -> AggregatedMetrics:
        days = validate_period_days(
            self.config.default_period_days if period_days is None else period_days
        )
        return self.aggregator.compute_metrics(self._records_since(user, days), days)

    def get_evaluation(self, user: str, period_days: Any = None) -> UserEvaluation:
        days = validate_period_days(
            self.config.default_period_days if period_days is None else period_days
        )
        end = self.clock()
        records = self._records_since(user, days)

        metrics = self.aggregator.compute_metrics(records, days)
        trend = self.trend_analyzer.classify(records)
        evaluation = self.evaluator.evaluate(metrics, trend)
        logger.debug(f"Evaluated {user} over {days} days: {evaluation.score} ({evaluation.rating.value})")

        return UserEvaluation(
            user=user,
            period_days=days,
            start=end - timedelta(days=days),
            end=end,
            metrics=metrics,
            trend=trend,
            evaluation=evaluation,
        )

    def get_monthly_report(self, user: str, month: Any, year: Any) -> MonthlyReport:
        return self.reports.generate(self.repository.find_records_by_user(user), month, year)

    def get_recent_reports(self, user: str, count: Optional[int] = None) -> List[MonthlyReport]:
        months = self.config.recent_report_months if count is None else count
        return self.reports.recent(self.repository.find_records_by_user(user), months)

    def get_predictions(self, user: str) -> PredictionResult:
        return self.predictor.predict(self.repository.find_records_by_user(user))

    def get_project_breakdown(self, user: str, period_days: Any = None) -> List[ProjectBreakdown]:
        days = validate_period_days(
            self.config.user_period_days if period_days is None else period_days
        )
        return project_breakdown(self._records_since(user, days))

    def get_team_overview(self, users: Iterable[str], period_days: Any = None) -> List[UserEvaluation]:
        """Evaluations for several users, best score first."""
        overview = [self.get_evaluation(user, period_days) for user in users]
        return sorted(overview, key=lambda e: e.evaluation.score, reverse=True)


def build_repository(config: ConfigModel) -> RecordRepository:
    if config.repository == "memory":
        return InMemoryRecordRepository()
    return SqliteRecordRepository(config.database_path)


def build_engine(config: ConfigModel, clock: Callable[[], datetime] = now_utc) -> PerformanceEngine:
    """Construct the engine and its repository from configuration."""
    repository = build_repository(config)
    logger.info(f"Performance engine ready ({config.repository} repository)")
    return PerformanceEngine(repository, config=config, clock=clock)
