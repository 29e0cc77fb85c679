"""Monthly performance reports."""

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..domain import PerformanceRecord
from ..utils.datetime import DateLike, now_utc, to_utc_date
from ..utils.validation import InvalidInputError, validate_month_year
from .metrics import AggregatedMetrics, MetricsAggregator

MONTH_NAMES: Dict[str, List[str]] = {
    'es': [
        "enero", "febrero", "marzo", "abril", "mayo", "junio",
        "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
    ],
    'en': [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
}


def month_name(month: int, locale: str = 'es') -> str:
    """Localized name of a month (1-12)."""
    if locale not in MONTH_NAMES:
        raise InvalidInputError(
            f"Unsupported report locale: {locale!r}",
            "report_locale",
            locale,
            [f"Use one of: {', '.join(MONTH_NAMES)}"],
        )
    return MONTH_NAMES[locale][month - 1]


def month_bounds(month: int, year: int) -> Tuple[date, date]:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move (year, month) by ``delta`` months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


@dataclass
class MonthlyReport:
    """Automated performance report for one calendar month"""
    month_name: str
    month: int
    year: int
    metrics: AggregatedMetrics
    start_date: date
    end_date: date

    def to_dict(self) -> Dict[str, Any]:
        return {
            'month': self.month_name,
            'month_number': self.month,
            'year': self.year,
            'metrics': self.metrics.to_dict(),
            'period': {
                'start_date': self.start_date.isoformat(),
                'end_date': self.end_date.isoformat(),
            },
        }


class MonthlyReportGenerator:
    """Runs the metrics aggregator over whole calendar months"""

    def __init__(self, aggregator: MetricsAggregator, locale: str = 'es',
                 clock: Callable[[], datetime] = now_utc):
        month_name(1, locale)
        self.aggregator = aggregator
        self.locale = locale
        self.clock = clock

    def generate(self, records: Iterable[PerformanceRecord], month: Any, year: Any) -> MonthlyReport:
        month, year = validate_month_year(month, year)
        start_date, end_date = month_bounds(month, year)

        metrics = self.aggregator.compute_window(records, start_date, end_date)
        return MonthlyReport(
            month_name=month_name(month, self.locale),
            month=month,
            year=year,
            metrics=metrics,
            start_date=start_date,
            end_date=end_date,
        )

    def recent(self, records: Iterable[PerformanceRecord], count: int = 3,
               today: Optional[DateLike] = None) -> List[MonthlyReport]:
        """Reports for the current month and the ``count - 1`` months before it."""
        records = list(records)
        reference = to_utc_date(today if today is not None else self.clock())

        reports = []
        for offset in range(count):
            year, month = shift_month(reference.year, reference.month, -offset)
            reports.append(self.generate(records, month, year))
        return reports
