"""
Tests for the automated evaluator
"""

import pytest

from perftrack.services.evaluation import AutomatedEvaluator, Rating, rating_for
from perftrack.services.metrics import AggregatedMetrics
from perftrack.services.trend import ProductivityTrend
from perftrack.utils.validation import InvalidInputError


@pytest.fixture
def evaluator():
    return AutomatedEvaluator()


def metrics(completion_rate=0.0, on_time_percentage=0.0, quality_score=0):
    return AggregatedMetrics(
        completion_rate=completion_rate,
        on_time_percentage=on_time_percentage,
        quality_score=quality_score,
    )


class TestAutomatedEvaluator:
    """Test score, rating and feedback"""

    def test_top_marks(self, evaluator):
        result = evaluator.evaluate(metrics(96, 96, 100), ProductivityTrend.IMPROVING)
        assert result.score == 100
        assert result.rating is Rating.EXCELLENT
        assert result.components == {'completion': 30, 'on_time': 40, 'trend': 20, 'quality': 10.0}

    def test_accepts_trend_value(self, evaluator):
        result = evaluator.evaluate(metrics(96, 96, 100), "improving")
        assert result.score == 100

    def test_empty_metrics(self, evaluator):
        result = evaluator.evaluate(AggregatedMetrics(), ProductivityTrend.STABLE)
        assert result.score == 40
        assert result.rating is Rating.NEEDS_IMPROVEMENT

    def test_declining_with_no_data_is_poor(self, evaluator):
        result = evaluator.evaluate(AggregatedMetrics(), ProductivityTrend.DECLINING)
        assert result.score == 30
        assert result.rating is Rating.POOR

    @pytest.mark.parametrize("rate,points", [(95, 30), (94.99, 25), (85, 25), (75, 20), (74.9, 10)])
    def test_completion_tiers(self, evaluator, rate, points):
        result = evaluator.evaluate(metrics(completion_rate=rate), ProductivityTrend.STABLE)
        assert result.components['completion'] == points

    @pytest.mark.parametrize("rate,points", [(95, 40), (85, 35), (75, 25), (10, 15)])
    def test_on_time_tiers(self, evaluator, rate, points):
        result = evaluator.evaluate(metrics(on_time_percentage=rate), ProductivityTrend.STABLE)
        assert result.components['on_time'] == points

    def test_rating_uses_unrounded_total(self, evaluator):
        # 30 + 40 + 15 + 4.5 = 89.5
        result = evaluator.evaluate(metrics(96, 96, 45), ProductivityTrend.STABLE)
        assert result.score == 90
        assert result.rating is Rating.GOOD

    def test_one_feedback_line_per_component(self, evaluator):
        result = evaluator.evaluate(metrics(80, 90, 60), ProductivityTrend.DECLINING)
        assert result.feedback == [
            "Average task completion rate",
            "Good delivery punctuality",
            "Review productivity strategies",
            "Late deliveries are lowering delivery quality",
        ]

    def test_is_deterministic(self, evaluator):
        first = evaluator.evaluate(metrics(88, 77, 66), ProductivityTrend.IMPROVING)
        second = evaluator.evaluate(metrics(88, 77, 66), ProductivityTrend.IMPROVING)
        assert first.to_dict() == second.to_dict()

    def test_unknown_trend(self, evaluator):
        with pytest.raises(InvalidInputError):
            evaluator.evaluate(AggregatedMetrics(), "sideways")


class TestRatingThresholds:
    """Test rating boundaries"""

    @pytest.mark.parametrize("score,rating", [
        (100, Rating.EXCELLENT),
        (90, Rating.EXCELLENT),
        (89.99, Rating.GOOD),
        (75, Rating.GOOD),
        (60, Rating.AVERAGE),
        (40, Rating.NEEDS_IMPROVEMENT),
        (39.9, Rating.POOR),
        (0, Rating.POOR),
    ])
    def test_boundaries(self, score, rating):
        assert rating_for(score) is rating
