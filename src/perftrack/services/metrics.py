"""Automated, objective performance metrics.

Metrics are computed only from data the system records by itself (status
transitions, due dates and working-day counts), never from manual input.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List

from ..domain import PerformanceRecord
from ..utils.datetime import DateLike, end_of_day, ensure_aware, now_utc, round_half_up, start_of_day, to_utc_date
from ..utils.validation import InvalidInputError, validate_period_days

logger = logging.getLogger(__name__)

DELAY_PENALTY = 10
EARLY_BONUS = 5


@dataclass
class AggregatedMetrics:
    """Point-in-time metrics over a set of performance records"""

    # Completion
    tasks_assigned: int = 0
    tasks_completed: int = 0
    completion_rate: float = 0.0  # percentage

    # Timing
    average_completion_days: float = 0.0
    on_time_deliveries: int = 0
    on_time_percentage: float = 0.0

    # Delays
    delayed_deliveries: int = 0
    average_delay_days: float = 0.0
    max_delay_days: int = 0

    # Productivity
    tasks_completed_this_month: int = 0

    # Quality (based on delivery timing)
    early_deliveries: int = 0
    early_delivery_percentage: float = 0.0
    quality_score: int = 0  # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _percentage(part: int, whole: int) -> float:
    return round_half_up(part / whole * 100) if whole else 0.0


def _mean(values: List[float]) -> float:
    return round_half_up(sum(values) / len(values)) if values else 0.0


def valid_completed(records: Iterable[PerformanceRecord]) -> List[PerformanceRecord]:
    """Completed records whose completion time and punctuality are both known.

    Completed records missing either value are excluded and logged.
    """
    valid = []
    for record in records:
        if not record.is_completed:
            continue
        if record.has_valid_completion:
            valid.append(record)
        else:
            logger.warning(
                f"Excluding inconsistent record for user {record.user}, task {record.task} from metrics"
            )
    return valid


def quality_score(delayed_deliveries: int, early_deliveries: int) -> int:
    """100 points, minus 10 per late delivery, plus 5 per early one, clamped to [0, 100]."""
    return max(0, min(100, 100 - DELAY_PENALTY * delayed_deliveries + EARLY_BONUS * early_deliveries))


class MetricsAggregator:
    """Computes aggregate completion and punctuality metrics"""

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self.clock = clock

    def compute_metrics(self, records: Iterable[PerformanceRecord], period_days: Any = 30) -> AggregatedMetrics:
        """Metrics over records created within the last ``period_days`` days.

        Raises:
            InvalidInputError: If ``period_days`` is negative or not an integer
        """
        days = validate_period_days(period_days)
        end = self.clock()
        return self._aggregate(records, end - timedelta(days=days), end)

    def compute_window(self, records: Iterable[PerformanceRecord],
                       start: DateLike, end: DateLike) -> AggregatedMetrics:
        """Metrics over records created between two calendar dates, inclusive."""
        first = to_utc_date(start)
        last = to_utc_date(end)
        if last < first:
            raise InvalidInputError(
                f"Window end {last} precedes window start {first}", "end", end
            )
        return self._aggregate(records, start_of_day(first), end_of_day(last))

    def _aggregate(self, records: Iterable[PerformanceRecord],
                   start: datetime, end: datetime) -> AggregatedMetrics:
        start = ensure_aware(start)
        end = ensure_aware(end)
        period_records = [r for r in records if start <= r.created_at <= end]
        completed = valid_completed(period_records)

        tasks_assigned = len(period_records)
        tasks_completed = len(completed)
        if tasks_assigned == 0:
            return AggregatedMetrics()

        on_time_deliveries = sum(1 for r in completed if r.is_on_time is True)
        delayed = [r for r in completed if r.is_on_time is False]
        delays = [max(0, r.completion_time - r.allowed_working_days) for r in delayed]
        early_deliveries = sum(1 for r in completed if r.completion_time < r.allowed_working_days)

        month_start = start_of_day(end.date().replace(day=1))
        completed_this_month = sum(1 for r in completed if r.created_at >= month_start)

        return AggregatedMetrics(
            tasks_assigned=tasks_assigned,
            tasks_completed=tasks_completed,
            completion_rate=_percentage(tasks_completed, tasks_assigned),
            average_completion_days=_mean([r.completion_time for r in completed]),
            on_time_deliveries=on_time_deliveries,
            on_time_percentage=_percentage(on_time_deliveries, tasks_completed),
            delayed_deliveries=len(delayed),
            average_delay_days=_mean(delays),
            max_delay_days=max(delays) if delays else 0,
            tasks_completed_this_month=completed_this_month,
            early_deliveries=early_deliveries,
            early_delivery_percentage=_percentage(early_deliveries, tasks_completed),
            quality_score=quality_score(len(delayed), early_deliveries),
        )
