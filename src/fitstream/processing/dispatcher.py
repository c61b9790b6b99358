"""
Mode dispatch: routes a requested mode to a handler and owns the fallback
chain.

  auto        small series → raw; oversized → option prompt (no data)
              option prompt fails → raw            (raw-fallback)
  raw         sample table of the series it is given
              table fails → channel counts          (raw-fallback)
  derived     feature extraction
              fails → raw                           (raw-fallback)
  ai-summary  SummaryGenerator, bounded by processing_timeout
              fails or times out → derived          (derived-fallback)

Each handler takes at most one fallback step. A failure that survives its
fallback becomes an emergency-fallback result: a diagnostic that carries the
error instead of raising it. Caller mistakes (invalid_request,
data_corrupted) are raised as-is and never retried. Cancellation of the
awaiting task propagates untouched.
"""
import asyncio
import logging
from typing import List, Optional, Union

from fitstream.analysis.features import extract_features
from fitstream.analysis.timeseries import TimeSeries
from fitstream.config import StreamProcessingSettings
from fitstream.processing.errors import ErrorKind, ProcessingError
from fitstream.processing.interfaces import SummaryGenerator
from fitstream.processing.models import ModeOption, ProcessedResult, ProcessingParams
from fitstream.processing.modes import (
    ProcessingMode,
    ResultMode,
    get_supported_modes,
    parse_mode,
)
from fitstream.processing.sizing import SizeEstimator
from fitstream.render.features import render_features
from fitstream.render.notices import (
    fallback_notice,
    render_emergency,
    render_mode_options,
    render_narrative,
)
from fitstream.render.streams import render_stream_counts, render_streams

logger = logging.getLogger(__name__)

# Failures that are the caller's to fix; they bypass the fallback chain.
_CALLER_ERRORS = (ErrorKind.INVALID_REQUEST, ErrorKind.DATA_CORRUPTED)


class ModeDispatcher:
    """Turns one TimeSeries into a ProcessedResult in the requested mode."""

    def __init__(
        self,
        settings: StreamProcessingSettings,
        summary_generator: Optional[SummaryGenerator] = None,
        estimator: Optional[SizeEstimator] = None,
    ):
        self.settings = settings
        self.summary_generator = summary_generator
        self.estimator = estimator or SizeEstimator(settings)

    def get_supported_modes(self) -> List[str]:
        return get_supported_modes()

    def validate_mode(self, mode: Union[str, ProcessingMode]) -> None:
        parse_mode(mode)

    async def dispatch(
        self,
        mode: Union[str, ProcessingMode],
        series: Optional[TimeSeries],
        params: Optional[ProcessingParams] = None,
    ) -> ProcessedResult:
        """
        Process `series` in `mode`.

        Raises:
            ProcessingError(invalid_request): unknown mode, or a handler
                precondition failed (e.g. ai-summary without a prompt).
            ProcessingError(data_corrupted): series is None.

        Any other failure is returned as an emergency-fallback result with
        `error` set.
        """
        params = params or ProcessingParams()
        try:
            processing_mode = parse_mode(mode)
        except ProcessingError as exc:
            exc.activity_id = params.activity_id
            raise
        if series is None:
            raise ProcessingError(
                ErrorKind.DATA_CORRUPTED,
                "no time series supplied",
                activity_id=params.activity_id,
                mode=processing_mode.value,
            )

        handlers = {
            ProcessingMode.AUTO: self._process_auto,
            ProcessingMode.RAW: self._process_raw,
            ProcessingMode.DERIVED: self._process_derived,
            ProcessingMode.AI_SUMMARY: self._process_ai_summary,
        }
        logger.info(
            "Dispatching activity %s in %s mode (%d points)",
            params.activity_id, processing_mode.value, series.point_count(),
        )

        try:
            result = await handlers[processing_mode](series, params)
        except ProcessingError as exc:
            if exc.kind in _CALLER_ERRORS:
                raise
            result = self._emergency_fallback(processing_mode, series, params, exc)
        except Exception as exc:
            failure = self._error(
                ErrorKind.PROCESSING_FAILURE, f"{processing_mode.value} processing failed",
                params, processing_mode,
            )
            failure.__cause__ = exc
            result = self._emergency_fallback(processing_mode, series, params, failure)

        result.correlation_id = params.correlation_id
        return result

    # ─── Handlers ──────────────────────────────────────────────────────────────

    async def _process_auto(self, series: TimeSeries, params: ProcessingParams) -> ProcessedResult:
        if not self.estimator.should_process(series):
            return await self._process_raw(series, params)

        try:
            return self._mode_options(series, params)
        except Exception:
            logger.exception("Auto mode failed for activity %s, falling back to raw", params.activity_id)
            result = await self._process_raw(series, params)
            result.content = fallback_notice("raw", "auto mode failed") + result.content
            result.mode = ResultMode.RAW_FALLBACK.value
            return result

    async def _process_raw(self, series: TimeSeries, params: ProcessingParams) -> ProcessedResult:
        try:
            content = render_streams(
                series, redact_location=self.settings.redaction_enabled, start_index=params.window_start,
            )
            mode = ResultMode.RAW
        except Exception:
            logger.exception("Raw rendering failed for activity %s, using channel counts", params.activity_id)
            content = fallback_notice("raw", "table rendering failed") + render_stream_counts(series)
            mode = ResultMode.RAW_FALLBACK

        return ProcessedResult(content=content, mode=mode.value, payload=series)

    async def _process_derived(self, series: TimeSeries, params: ProcessingParams) -> ProcessedResult:
        try:
            features = extract_features(series, params.laps)
            content = render_features(
                features, params.activity_id, redact_location=self.settings.redaction_enabled,
            )
        except Exception as exc:
            logger.warning(
                "Derived processing failed for activity %s, falling back to raw: %s",
                params.activity_id, exc,
            )
            result = await self._process_raw(series, params)
            result.content = fallback_notice("raw", "derived mode failed") + result.content
            result.mode = ResultMode.RAW_FALLBACK.value
            return result

        return ProcessedResult(content=content, mode=ResultMode.DERIVED.value, payload=features)

    async def _process_ai_summary(self, series: TimeSeries, params: ProcessingParams) -> ProcessedResult:
        mode = ProcessingMode.AI_SUMMARY
        if not params.summary_prompt or not params.summary_prompt.strip():
            raise self._error(
                ErrorKind.INVALID_REQUEST, "ai-summary mode requires a summary prompt", params, mode,
            ).with_context("missing", "summary_prompt")
        if self.summary_generator is None:
            raise self._error(
                ErrorKind.PROCESSOR_UNAVAILABLE, "no summary generator is configured", params, mode,
            )

        timeout = self.settings.processing_timeout
        try:
            narrative = await asyncio.wait_for(
                self.summary_generator.generate(series, params.activity_id, params.summary_prompt),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            failure = self._error(
                ErrorKind.AI_SUMMARY_FAILURE, f"summary generation timed out after {timeout:g}s",
                params, mode,
            ).with_context("timeout_seconds", timeout)
            failure.__cause__ = exc
        except Exception as exc:
            failure = self._error(ErrorKind.AI_SUMMARY_FAILURE, "summary generation failed", params, mode)
            failure.__cause__ = exc
        else:
            return ProcessedResult(
                content=render_narrative(narrative), mode=ResultMode.AI_SUMMARY.value, payload=narrative,
            )

        logger.warning(
            "AI summary failed for activity %s, falling back to derived: %s",
            params.activity_id, failure.__cause__,
        )
        try:
            features = extract_features(series, params.laps)
            content = render_features(
                features, params.activity_id, redact_location=self.settings.redaction_enabled,
            )
        except Exception:
            logger.exception("Derived fallback failed for activity %s", params.activity_id)
            raise failure

        return ProcessedResult(
            content=fallback_notice("derived", "AI summarization failed") + content,
            mode=ResultMode.DERIVED_FALLBACK.value,
            payload=features,
        )

    # ─── Support ───────────────────────────────────────────────────────────────

    def _mode_options(self, series: TimeSeries, params: ProcessingParams) -> ProcessedResult:
        cost = self.estimator.estimate_cost(series)
        points = series.point_count()
        large = points > self.settings.large_dataset_threshold
        options = [
            ModeOption(
                mode=ProcessingMode.RAW.value,
                description="every sample, delivered in pages",
                command=f"mode=raw page_number=1 page_size={self.settings.default_page_size}",
            ),
            ModeOption(
                mode=ProcessingMode.DERIVED.value,
                description="statistics, trends, inflection points and lap comparisons",
                command="mode=derived",
                recommended=large,
            ),
            ModeOption(
                mode=ProcessingMode.AI_SUMMARY.value,
                description="a narrative answer to a question you provide",
                command='mode=ai-summary summary_prompt="..."',
            ),
        ]
        content = render_mode_options(
            params.activity_id,
            series,
            estimated_tokens=cost,
            budget=self.settings.max_context_tokens,
            options=options,
            tokens_per_point=cost / points if points else 0.0,
        )
        return ProcessedResult(content=content, mode=ResultMode.AUTO.value, options=options)

    def _emergency_fallback(
        self,
        mode: ProcessingMode,
        series: TimeSeries,
        params: ProcessingParams,
        error: ProcessingError,
    ) -> ProcessedResult:
        logger.warning(
            "Emergency fallback for activity %s in %s mode: %s", params.activity_id, mode.value, error,
        )
        if error.activity_id is None:
            error.activity_id = params.activity_id
        if error.mode is None:
            error.mode = mode.value
        return ProcessedResult(
            content=render_emergency(params.activity_id, mode.value, error, series),
            mode=ResultMode.EMERGENCY_FALLBACK.value,
            payload=error,
            error=error,
        )

    @staticmethod
    def _error(
        kind: ErrorKind, message: str, params: ProcessingParams, mode: ProcessingMode,
    ) -> ProcessingError:
        return ProcessingError(kind, message, activity_id=params.activity_id, mode=mode.value)
