"""Application services for perftrack."""

from .record_store import PerformanceRecordStore, RepairReport
from .metrics import AggregatedMetrics, MetricsAggregator
from .trend import ProductivityTrend, TrendAnalyzer
from .evaluation import AutomatedEvaluator, EvaluationResult, Rating
from .reports import MonthlyReport, MonthlyReportGenerator
from .predictions import (
    PerformancePredictor,
    PerformanceSummary,
    PredictionResult,
    ProjectBreakdown,
    summarize,
    project_breakdown,
)
from .engine import (
    PerformanceEngine,
    TaskNotRegisteredError,
    UserEvaluation,
    build_engine,
)

__all__ = [
    "PerformanceRecordStore",
    "RepairReport",
    "AggregatedMetrics",
    "MetricsAggregator",
    "ProductivityTrend",
    "TrendAnalyzer",
    "AutomatedEvaluator",
    "EvaluationResult",
    "Rating",
    "MonthlyReport",
    "MonthlyReportGenerator",
    "PerformancePredictor",
    "PerformanceSummary",
    "PredictionResult",
    "ProjectBreakdown",
    "summarize",
    "project_breakdown",
    "PerformanceEngine",
    "TaskNotRegisteredError",
    "UserEvaluation",
    "build_engine",
]
