"""Performance summaries and workload predictions for planning.

Predictions extrapolate a user's recent completion history: the trend of
the last five completed tasks against the earlier ones scales the average
completion time into an estimate for upcoming work.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..domain import PerformanceRecord
from ..utils.datetime import now_utc, round_half_up, round_half_up_int
from .metrics import valid_completed
from .reports import shift_month

RECENT_TASKS = 5
MINIMUM_TASKS = 3
WORKING_DAYS_PER_MONTH = 20
MAX_CONFIDENCE = 90


@dataclass
class PerformanceSummary:
    """Averages over completed tasks plus a completion-time estimate"""
    average_completion_time: float = 0.0  # working days
    on_time_percentage: float = 0.0
    productivity_trend: float = 0.0  # percent, positive = faster
    estimated_completion_time: float = 0.0  # working days

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonthlyTrend:
    tasks: int
    average_time: float
    on_time_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonthPrediction:
    period: str  # YYYY-MM
    estimated_completion_time: float
    expected_on_time_rate: float
    recommended_task_load: int
    confidence_level: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PredictionResult:
    """Predictions for the coming months, or why none could be made"""
    sufficient_data: bool
    current_tasks: int
    minimum_tasks_required: int = MINIMUM_TASKS
    summary: Optional[PerformanceSummary] = None
    monthly_trends: Dict[str, MonthlyTrend] = field(default_factory=dict)
    predictions: List[MonthPrediction] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    optimal_task_load: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if not self.sufficient_data:
            return {
                'message': "Insufficient data to make predictions",
                'minimum_tasks_required': self.minimum_tasks_required,
                'current_tasks': self.current_tasks,
            }
        return {
            'current_metrics': self.summary.to_dict(),
            'monthly_trends': {k: v.to_dict() for k, v in self.monthly_trends.items()},
            'predictions': [p.to_dict() for p in self.predictions],
            'recommendations': {
                'strengths': list(self.strengths),
                'improvements': list(self.improvements),
                'optimal_task_load': self.optimal_task_load,
            },
        }


@dataclass
class ProjectBreakdown:
    """Per-project share of a user's records"""
    project: str
    tasks: int
    completed_tasks: int
    average_time: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(records: Iterable[PerformanceRecord]) -> PerformanceSummary:
    """Summary over valid completed records, oldest first."""
    completed = sorted(valid_completed(records), key=lambda r: r.created_at)
    if not completed:
        return PerformanceSummary()

    times = [r.completion_time for r in completed]
    average = sum(times) / len(times)
    on_time = sum(1 for r in completed if r.is_on_time) / len(completed) * 100

    recent = times[-RECENT_TASKS:]
    older = times[:-RECENT_TASKS]
    trend = 0.0
    if older and recent:
        older_avg = sum(older) / len(older)
        recent_avg = sum(recent) / len(recent)
        if older_avg:
            trend = (older_avg - recent_avg) / older_avg * 100

    estimated = max(average * (1 - trend / 100), 1)

    return PerformanceSummary(
        average_completion_time=round_half_up(average),
        on_time_percentage=round_half_up(on_time),
        productivity_trend=round_half_up(trend),
        estimated_completion_time=round_half_up(estimated),
    )


def monthly_trends(records: Iterable[PerformanceRecord]) -> Dict[str, MonthlyTrend]:
    """Average completion time and on-time rate per creation month (YYYY-MM)."""
    by_month: Dict[str, List[PerformanceRecord]] = defaultdict(list)
    for record in valid_completed(records):
        by_month[record.created_at.strftime("%Y-%m")].append(record)

    trends = {}
    for month in sorted(by_month):
        month_records = by_month[month]
        trends[month] = MonthlyTrend(
            tasks=len(month_records),
            average_time=round_half_up(sum(r.completion_time for r in month_records) / len(month_records)),
            on_time_rate=round_half_up(sum(1 for r in month_records if r.is_on_time) / len(month_records) * 100),
        )
    return trends


def project_breakdown(records: Iterable[PerformanceRecord]) -> List[ProjectBreakdown]:
    """Group a user's records by project."""
    by_project: Dict[str, List[PerformanceRecord]] = defaultdict(list)
    for record in records:
        by_project[record.project].append(record)

    breakdown = []
    for project, project_records in by_project.items():
        times = [r.completion_time for r in valid_completed(project_records)]
        breakdown.append(ProjectBreakdown(
            project=project,
            tasks=len(project_records),
            completed_tasks=sum(1 for r in project_records if r.is_completed),
            average_time=round_half_up(sum(times) / len(times)) if times else 0.0,
        ))
    return breakdown


class PerformancePredictor:
    """Forecasts completion times and a sustainable task load"""

    def __init__(self, clock: Callable[[], datetime] = now_utc,
                 months_ahead: int = 3, lookback_days: int = 183):
        self.clock = clock
        self.months_ahead = months_ahead
        self.lookback_days = lookback_days

    def predict(self, records: Iterable[PerformanceRecord]) -> PredictionResult:
        now = self.clock()
        cutoff = now - timedelta(days=self.lookback_days)
        history = [r for r in valid_completed(records) if r.created_at >= cutoff]

        if len(history) < MINIMUM_TASKS:
            return PredictionResult(sufficient_data=False, current_tasks=len(history))

        summary = summarize(history)
        estimated = summary.estimated_completion_time
        task_load = round_half_up_int(WORKING_DAYS_PER_MONTH / estimated)
        confidence = min(len(history) * 10, MAX_CONFIDENCE)
        expected_on_time = round_half_up(min(summary.on_time_percentage + summary.productivity_trend / 10, 100))

        predictions = []
        for offset in range(1, self.months_ahead + 1):
            year, month = shift_month(now.year, now.month, offset)
            predictions.append(MonthPrediction(
                period=f"{year:04d}-{month:02d}",
                estimated_completion_time=estimated,
                expected_on_time_rate=expected_on_time,
                recommended_task_load=task_load,
                confidence_level=confidence,
            ))

        strengths = ["Punctual task completion"] if summary.on_time_percentage > 80 else []
        improvements = ["Improve time management"] if summary.on_time_percentage < 70 else []

        return PredictionResult(
            sufficient_data=True,
            current_tasks=len(history),
            summary=summary,
            monthly_trends=monthly_trends(history),
            predictions=predictions,
            strengths=strengths,
            improvements=improvements,
            optimal_task_load=task_load,
        )
