"""Tests for ModeDispatcher: mode routing, fallbacks and emergency degradation.

The SummaryGenerator is replaced with AsyncMock / small fakes; no network.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fitstream.analysis.features import DerivedFeatures
from fitstream.analysis.timeseries import Lap, TimeSeries, from_streams
from fitstream.config import StreamProcessingSettings
from fitstream.processing.dispatcher import ModeDispatcher
from fitstream.processing.errors import ErrorKind, ProcessingError
from fitstream.processing.models import Narrative, ProcessingParams


# ─── Helpers ──────────────────────────────────────────────────────────────────

def make_series(n: int) -> TimeSeries:
    return TimeSeries(
        time=list(range(n)),
        heart_rate=[140 + (i % 20) for i in range(n)],
        power=[200 + (i % 30) for i in range(n)],
    )


class SlowGenerator:
    """Generator that never finishes in time."""

    def __init__(self):
        self.started = asyncio.Event()

    async def generate(self, series, activity_id, prompt):
        self.started.set()
        await asyncio.sleep(60)


@pytest.fixture
def settings():
    # time + heartrate + watts = 14 bytes/point → 3.5 tokens/point; 1000 tokens ≈ 285 points
    return StreamProcessingSettings(
        max_context_tokens=1000,
        context_safety_margin=100,
        large_dataset_threshold=500,
        processing_timeout=30.0,
    )


@pytest.fixture
def generator():
    gen = MagicMock()
    gen.generate = AsyncMock(return_value=Narrative(
        activity_id=7, prompt="How was my pacing?", summary="Even pacing throughout.",
        tokens_used=321, model="claude-sonnet-4-5",
    ))
    return gen


@pytest.fixture
def dispatcher(settings, generator):
    return ModeDispatcher(settings, summary_generator=generator)


def params(**kwargs) -> ProcessingParams:
    kwargs.setdefault("activity_id", 7)
    return ProcessingParams(**kwargs)


# ─── Boundary Checks ──────────────────────────────────────────────────────────

class TestBoundary:
    @pytest.mark.asyncio
    async def test_unknown_mode_rejected(self, dispatcher):
        with pytest.raises(ProcessingError) as exc_info:
            await dispatcher.dispatch("invalid-mode", make_series(10), params())
        assert exc_info.value.kind == ErrorKind.INVALID_REQUEST
        assert exc_info.value.activity_id == 7

    @pytest.mark.asyncio
    async def test_missing_series_is_data_corrupted(self, dispatcher):
        with pytest.raises(ProcessingError) as exc_info:
            await dispatcher.dispatch("raw", None, params())
        assert exc_info.value.kind == ErrorKind.DATA_CORRUPTED

    def test_supported_modes(self, dispatcher):
        assert set(dispatcher.get_supported_modes()) == {"auto", "raw", "derived", "ai-summary"}

    def test_validate_mode(self, dispatcher):
        dispatcher.validate_mode("derived")
        with pytest.raises(ProcessingError):
            dispatcher.validate_mode("summary")

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, dispatcher):
        result = await dispatcher.dispatch("raw", make_series(10), params(correlation_id="req-123"))
        assert result.correlation_id == "req-123"

    @pytest.mark.asyncio
    async def test_params_optional(self, dispatcher):
        result = await dispatcher.dispatch("derived", make_series(10))
        assert result.mode == "derived"


# ─── Auto ─────────────────────────────────────────────────────────────────────

class TestAutoMode:
    @pytest.mark.asyncio
    async def test_small_series_behaves_as_raw(self, dispatcher):
        result = await dispatcher.dispatch("auto", make_series(20), params())
        assert result.mode == "raw"
        assert result.options == []
        assert "heartrate" in result.content

    @pytest.mark.asyncio
    async def test_large_series_offers_options(self, dispatcher):
        result = await dispatcher.dispatch("auto", make_series(400), params())
        assert result.mode == "auto"
        assert [o.mode for o in result.options] == ["raw", "derived", "ai-summary"]
        assert result.content.startswith("**Output too large for context window**")
        assert result.payload is None

    @pytest.mark.asyncio
    async def test_derived_recommended_for_very_large_series(self, dispatcher):
        result = await dispatcher.dispatch("auto", make_series(600), params())
        recommended = [o.mode for o in result.options if o.recommended]
        assert recommended == ["derived"]

    @pytest.mark.asyncio
    async def test_no_recommendation_below_threshold(self, dispatcher):
        result = await dispatcher.dispatch("auto", make_series(400), params())
        assert not any(o.recommended for o in result.options)

    @pytest.mark.asyncio
    async def test_option_failure_falls_back_to_raw(self, dispatcher):
        with patch("fitstream.processing.dispatcher.render_mode_options", side_effect=RuntimeError("boom")):
            result = await dispatcher.dispatch("auto", make_series(400), params())
        assert result.mode == "raw-fallback"
        assert result.content.startswith("**Fallback Mode:** raw (auto mode failed)")


# ─── Raw ──────────────────────────────────────────────────────────────────────

class TestRawMode:
    @pytest.mark.asyncio
    async def test_renders_every_sample(self, dispatcher):
        result = await dispatcher.dispatch("raw", make_series(5), params())
        assert result.mode == "raw"
        assert result.payload.point_count() == 5
        assert "\n4\t4\t" in result.content

    @pytest.mark.asyncio
    async def test_window_start_offsets_row_index(self, dispatcher):
        result = await dispatcher.dispatch("raw", make_series(5), params(window_start=100))
        assert "\n100\t0\t" in result.content

    @pytest.mark.asyncio
    async def test_series_rendered_whole(self, dispatcher):
        result = await dispatcher.dispatch("raw", make_series(1000), params())
        assert result.payload.point_count() == 1000

    @pytest.mark.asyncio
    async def test_unrenderable_values_degrade_to_counts(self, dispatcher):
        series = from_streams({"time": [0, 1, 2], "heartrate": [120, None, 130]})
        result = await dispatcher.dispatch("raw", series, params())
        assert result.mode == "raw-fallback"
        assert result.error is None
        assert result.content.startswith("**Fallback Mode:** raw (table rendering failed)")
        assert "Data points: 3" in result.content
        assert "- heartrate: 3 points" in result.content

    @pytest.mark.asyncio
    async def test_location_redacted_by_default(self, dispatcher):
        series = TimeSeries(time=[0, 1], latlng=[(45.0, 7.0), (45.1, 7.1)])
        result = await dispatcher.dispatch("raw", series, params())
        assert "45.00000" not in result.content
        assert "redacted" in result.content


# ─── Derived ──────────────────────────────────────────────────────────────────

class TestDerivedMode:
    @pytest.mark.asyncio
    async def test_extracts_features(self, dispatcher):
        result = await dispatcher.dispatch("derived", make_series(120), params())
        assert result.mode == "derived"
        assert isinstance(result.payload, DerivedFeatures)
        assert "### Summary" in result.content

    @pytest.mark.asyncio
    async def test_laps_passed_through(self, dispatcher):
        laps = [Lap("A", 0, 59, average_speed=8.0), Lap("B", 60, 119, average_speed=7.5)]
        result = await dispatcher.dispatch("derived", make_series(120), params(laps=laps))
        assert result.payload.lap_analysis.comparisons.fastest_lap == 1
        assert "### Laps (2)" in result.content

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_raw(self, dispatcher):
        with patch("fitstream.processing.dispatcher.extract_features", side_effect=ValueError("bad data")):
            result = await dispatcher.dispatch("derived", make_series(10), params())
        assert result.mode == "raw-fallback"
        assert result.content.startswith("**Fallback Mode:** raw (derived mode failed)")
        assert result.error is None


# ─── AI Summary ───────────────────────────────────────────────────────────────

class TestAiSummaryMode:
    @pytest.mark.asyncio
    async def test_success(self, dispatcher, generator):
        series = make_series(10)
        result = await dispatcher.dispatch(
            "ai-summary", series, params(summary_prompt="How was my pacing?"),
        )
        assert result.mode == "ai-summary"
        assert "Even pacing throughout." in result.content
        assert result.payload.tokens_used == 321
        generator.generate.assert_awaited_once_with(series, 7, "How was my pacing?")

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected_without_calling_generator(self, dispatcher, generator):
        with pytest.raises(ProcessingError) as exc_info:
            await dispatcher.dispatch("ai-summary", make_series(10), params(summary_prompt=""))
        assert exc_info.value.kind == ErrorKind.INVALID_REQUEST
        assert "prompt" in exc_info.value.message
        generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_whitespace_prompt_rejected(self, dispatcher, generator):
        with pytest.raises(ProcessingError):
            await dispatcher.dispatch("ai-summary", make_series(10), params(summary_prompt="   "))
        generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_generator_failure_falls_back_to_derived(self, dispatcher, generator):
        generator.generate.side_effect = RuntimeError("overloaded")
        result = await dispatcher.dispatch("ai-summary", make_series(60), params(summary_prompt="Summarise"))
        assert result.mode == "derived-fallback"
        assert result.content.startswith("**Fallback Mode:** derived (AI summarization failed)")
        assert isinstance(result.payload, DerivedFeatures)

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_derived(self):
        settings = StreamProcessingSettings(max_context_tokens=1000, context_safety_margin=100,
                                            processing_timeout=0.05)
        dispatcher = ModeDispatcher(settings, summary_generator=SlowGenerator())
        result = await dispatcher.dispatch("ai-summary", make_series(60), params(summary_prompt="Summarise"))
        assert result.mode == "derived-fallback"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, settings):
        generator = SlowGenerator()
        dispatcher = ModeDispatcher(settings, summary_generator=generator)
        task = asyncio.create_task(
            dispatcher.dispatch("ai-summary", make_series(60), params(summary_prompt="Summarise"))
        )
        await asyncio.wait_for(generator.started.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_both_paths_failing_is_emergency(self, dispatcher, generator):
        generator.generate.side_effect = RuntimeError("overloaded")
        with patch("fitstream.processing.dispatcher.extract_features", side_effect=ValueError("bad data")):
            result = await dispatcher.dispatch(
                "ai-summary", make_series(10), params(summary_prompt="Summarise", correlation_id="c-1"),
            )
        assert result.mode == "emergency-fallback"
        assert result.error.kind == ErrorKind.AI_SUMMARY_FAILURE
        assert isinstance(result.error.__cause__, RuntimeError)
        assert result.content.startswith("**Emergency Fallback**")
        assert "Requested mode: ai-summary" in result.content
        assert "Data points: 10" in result.content
        assert result.correlation_id == "c-1"

    @pytest.mark.asyncio
    async def test_no_generator_configured(self, settings):
        dispatcher = ModeDispatcher(settings)
        result = await dispatcher.dispatch("ai-summary", make_series(10), params(summary_prompt="Summarise"))
        assert result.mode == "emergency-fallback"
        assert result.error.kind == ErrorKind.PROCESSOR_UNAVAILABLE
        assert result.error.activity_id == 7


# ─── Emergency ────────────────────────────────────────────────────────────────

class TestEmergencyFallback:
    @pytest.mark.asyncio
    async def test_unexpected_handler_error_never_escapes(self, dispatcher):
        with patch.object(dispatcher, "_process_raw", AsyncMock(side_effect=KeyError("oops"))):
            result = await dispatcher.dispatch("raw", make_series(10), params())
        assert result.mode == "emergency-fallback"
        assert result.error.kind == ErrorKind.PROCESSING_FAILURE
        assert result.content

    @pytest.mark.asyncio
    async def test_result_is_never_none(self, dispatcher):
        for mode in ("auto", "raw", "derived"):
            result = await dispatcher.dispatch(mode, make_series(30), params())
            assert result is not None
            assert result.content
