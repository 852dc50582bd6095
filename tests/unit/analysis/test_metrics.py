import pytest

from typing_trainer.analysis.metrics import MetricsEngine
from typing_trainer.core.errors import InvalidIntervalError, ValidationError
from typing_trainer.types import DifferenceAnalysis, ErrorType, TypingError


def make_analysis(correct=0, incorrect=0, missing=0, errors=0):
    return DifferenceAnalysis(
        correct_characters=correct,
        incorrect_characters=incorrect,
        missing_characters=missing,
        errors=[TypingError(type=ErrorType.EXTRA, position=i, expected="", actual="x") for i in range(errors)],
    )


@pytest.fixture
def engine():
    return MetricsEngine()


class TestComputeMetrics:
    def test_one_minute_clean_run(self, engine):
        metrics = engine.compute_metrics(make_analysis(correct=50), 0, 60000)

        assert metrics.wpm == 10.0
        assert metrics.accuracy == 100.0
        assert metrics.duration == 1.0
        assert metrics.error_rate == 0.0
        assert metrics.net_wpm == 10.0

    def test_errors_reduce_net_wpm(self, engine):
        metrics = engine.compute_metrics(make_analysis(correct=48, incorrect=2, errors=2), 1000, 31000)

        assert metrics.duration == 0.5
        assert metrics.wpm == 20.0
        assert metrics.error_rate == 4.0
        assert metrics.net_wpm == 19.2

    def test_accuracy_is_rounded(self, engine):
        metrics = engine.compute_metrics(make_analysis(correct=2, missing=1, errors=1), 0, 60000)
        assert metrics.accuracy == 66.67

    def test_net_wpm_never_negative(self, engine):
        metrics = engine.compute_metrics(make_analysis(correct=5, errors=100), 0, 60000)
        assert metrics.net_wpm == 0.0

    @pytest.mark.parametrize("start,end", [(1000, 1000), (2000, 1000)])
    def test_non_positive_interval_is_rejected(self, engine, start, end):
        with pytest.raises(InvalidIntervalError) as exc_info:
            engine.compute_metrics(make_analysis(correct=5), start, end)
        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.status_code == 400

    def test_metrics_serialize_with_wire_names(self, engine):
        d = engine.compute_metrics(make_analysis(correct=50), 0, 60000).to_dict()
        assert d == {"wpm": 10.0, "accuracy": 100.0, "duration": 1.0, "errorRate": 0.0, "netWpm": 10.0}


class TestWithoutInterval:
    def test_rates_are_zero(self):
        metrics = MetricsEngine.without_interval(make_analysis(correct=11, incorrect=1, errors=1))

        assert metrics.wpm == 0.0
        assert metrics.net_wpm == 0.0
        assert metrics.error_rate == 0.0
        assert metrics.duration == 0.0

    def test_accuracy_is_kept(self):
        metrics = MetricsEngine.without_interval(make_analysis(correct=2, missing=1, errors=1))
        assert metrics.accuracy == 66.67


class TestHelpers:
    def test_calculate_wpm(self):
        assert MetricsEngine.calculate_wpm(250, 2.0) == 25.0

    def test_calculate_error_rate(self):
        assert MetricsEngine.calculate_error_rate(3, 1.5) == 2.0

    def test_calculate_net_wpm(self):
        assert MetricsEngine.calculate_net_wpm(40.0, 10, 1.0) == 38.0
