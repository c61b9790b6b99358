"""Tests for SizeEstimator."""
import pytest

from fitstream.analysis.timeseries import TimeSeries
from fitstream.config import StreamProcessingSettings
from fitstream.processing.sizing import SizeEstimator


@pytest.fixture
def estimator(stream_settings):
    return SizeEstimator(stream_settings)


def hr_series(n: int) -> TimeSeries:
    return TimeSeries(heart_rate=[150] * n)


class TestEstimateCost:
    def test_none_and_empty_cost_nothing(self, estimator):
        assert estimator.estimate_cost(None) == 0
        assert estimator.estimate_cost(TimeSeries()) == 0

    def test_per_channel_byte_widths(self, estimator):
        # heartrate 4 bytes, time 6 bytes, ratio 0.25
        assert estimator.estimate_cost(hr_series(100)) == 100
        series = TimeSeries(time=list(range(100)), heart_rate=[150] * 100)
        assert estimator.estimate_cost(series) == 250

    def test_grows_with_length(self, estimator):
        assert estimator.estimate_cost(hr_series(2000)) > estimator.estimate_cost(hr_series(1000))


class TestShouldProcess:
    def test_matches_cost_against_budget(self):
        estimator = SizeEstimator(StreamProcessingSettings(max_context_tokens=100, context_safety_margin=10))
        for n in (0, 50, 100, 101, 500):
            series = hr_series(n)
            assert estimator.should_process(series) == (estimator.estimate_cost(series) > 100)

    def test_exactly_at_budget_is_not_processed(self):
        estimator = SizeEstimator(StreamProcessingSettings(max_context_tokens=100, context_safety_margin=10))
        assert estimator.should_process(hr_series(100)) is False
        assert estimator.should_process(hr_series(104)) is True

    def test_none_is_never_processed(self, estimator):
        assert estimator.should_process(None) is False


class TestTextAndPointEstimates:
    def test_estimate_text_rounds_up(self, estimator):
        assert estimator.estimate_text("x" * 10) == 3
        assert estimator.estimate_text("") == 0

    def test_tokens_per_point(self, estimator):
        series = TimeSeries(time=[0], heart_rate=[150])
        assert estimator.tokens_per_point(series) == pytest.approx(2.5)
        assert estimator.estimate_points(series, 1000) == 2500
