"""Productivity trend classification."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, List, Optional

from ..domain import PerformanceRecord
from ..utils.datetime import now_utc
from .metrics import valid_completed


class ProductivityTrend(Enum):
    """Direction of average completion time between two windows"""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


def _mean_completion(records: List[PerformanceRecord]) -> float:
    return sum(r.completion_time for r in records) / len(records)


class TrendAnalyzer:
    """Compares the most recent window of completed work with the one before it.

    A drop in average completion time of more than ``threshold`` percent is
    an improvement, a rise of more than ``threshold`` percent a decline.
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc,
                 window_days: int = 14, threshold: float = 5.0):
        self.clock = clock
        self.window_days = window_days
        self.threshold = threshold

    def _windows(self, records: Iterable[PerformanceRecord]):
        now = self.clock()
        recent_start = now - timedelta(days=self.window_days)
        older_start = now - timedelta(days=self.window_days * 2)

        completed = valid_completed(records)
        recent = [r for r in completed if r.created_at >= recent_start]
        older = [r for r in completed if older_start <= r.created_at < recent_start]
        return recent, older

    def improvement_percentage(self, records: Iterable[PerformanceRecord]) -> Optional[float]:
        """Percentage drop in average completion time, or None without data in both windows.

        An older window averaging zero days yields -inf when recent work took
        any time at all, and None otherwise.
        """
        recent, older = self._windows(records)
        if not recent or not older:
            return None

        older_avg = _mean_completion(older)
        recent_avg = _mean_completion(recent)
        if older_avg == 0:
            return float("-inf") if recent_avg > 0 else None
        return (older_avg - recent_avg) / older_avg * 100

    def classify(self, records: Iterable[PerformanceRecord]) -> ProductivityTrend:
        improvement = self.improvement_percentage(records)
        if improvement is None:
            return ProductivityTrend.STABLE
        if improvement > self.threshold:
            return ProductivityTrend.IMPROVING
        if improvement < -self.threshold:
            return ProductivityTrend.DECLINING
        return ProductivityTrend.STABLE
