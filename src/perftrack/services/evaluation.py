"""Automated, non-discretionary performance evaluation.

The score is a weighted sum of four components and depends on nothing but
the aggregated metrics and the productivity trend:

- completion rate (max 30 points)
- on-time delivery (max 40 points)
- productivity trend (max 20 points)
- delivery quality (max 10 points)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from ..utils.datetime import round_half_up, round_half_up_int
from ..utils.validation import InvalidInputError
from .metrics import AggregatedMetrics
from .trend import ProductivityTrend


class Rating(Enum):
    """Overall evaluation rating"""
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    NEEDS_IMPROVEMENT = "needs_improvement"
    POOR = "poor"


# (minimum percentage, points, feedback); the last tier is the fallback.
COMPLETION_TIERS: List[Tuple[float, int, str]] = [
    (95, 30, "Excellent task completion rate"),
    (85, 25, "Good task completion rate"),
    (75, 20, "Average task completion rate"),
    (0, 10, "Task completion rate needs to improve"),
]

ON_TIME_TIERS: List[Tuple[float, int, str]] = [
    (95, 40, "Consistently delivers on time"),
    (85, 35, "Good delivery punctuality"),
    (75, 25, "Average delivery punctuality"),
    (0, 15, "Delivery punctuality needs to improve"),
]

TREND_POINTS: Dict[ProductivityTrend, Tuple[int, str]] = {
    ProductivityTrend.IMPROVING: (20, "Steadily improving completion times"),
    ProductivityTrend.STABLE: (15, "Stable performance"),
    ProductivityTrend.DECLINING: (5, "Review productivity strategies"),
}

QUALITY_FEEDBACK: List[Tuple[float, str]] = [
    (90, "Deliveries rarely slip past their due dates"),
    (70, "Some deliveries slip past their due dates"),
    (0, "Late deliveries are lowering delivery quality"),
]

QUALITY_WEIGHT = 10

RATING_THRESHOLDS: List[Tuple[float, Rating]] = [
    (90, Rating.EXCELLENT),
    (75, Rating.GOOD),
    (60, Rating.AVERAGE),
    (40, Rating.NEEDS_IMPROVEMENT),
]


def _tier(value: float, tiers: List[Tuple[float, int, str]]) -> Tuple[int, str]:
    for minimum, points, feedback in tiers:
        if value >= minimum:
            return points, feedback
    return tiers[-1][1], tiers[-1][2]


def rating_for(score: float) -> Rating:
    for minimum, rating in RATING_THRESHOLDS:
        if score >= minimum:
            return rating
    return Rating.POOR


@dataclass
class EvaluationResult:
    """Outcome of an automated evaluation"""
    score: int  # 0-100
    rating: Rating
    feedback: List[str] = field(default_factory=list)
    components: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'rating': self.rating.value,
            'feedback': list(self.feedback),
            'components': dict(self.components),
        }


class AutomatedEvaluator:
    """Maps metrics and trend to a reproducible score, rating and feedback"""

    def evaluate(self, metrics: AggregatedMetrics, trend: ProductivityTrend) -> EvaluationResult:
        try:
            trend = ProductivityTrend(trend)
        except ValueError:
            raise InvalidInputError(
                f"Unknown productivity trend: {trend!r}", "trend", trend,
                [f"Use one of: {', '.join(t.value for t in ProductivityTrend)}"],
            ) from None

        completion_points, completion_feedback = _tier(metrics.completion_rate, COMPLETION_TIERS)
        on_time_points, on_time_feedback = _tier(metrics.on_time_percentage, ON_TIME_TIERS)
        trend_points, trend_feedback = TREND_POINTS[trend]

        quality = max(0, min(100, metrics.quality_score))
        quality_points = quality / 100 * QUALITY_WEIGHT
        quality_feedback = next(text for minimum, text in QUALITY_FEEDBACK if quality >= minimum)

        total = completion_points + on_time_points + trend_points + quality_points

        return EvaluationResult(
            score=round_half_up_int(total),
            rating=rating_for(total),
            feedback=[completion_feedback, on_time_feedback, trend_feedback, quality_feedback],
            components={
                'completion': completion_points,
                'on_time': on_time_points,
                'trend': trend_points,
                'quality': round_half_up(quality_points),
            },
        )
