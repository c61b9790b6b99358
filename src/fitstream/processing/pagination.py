"""
Paginated delivery of activity telemetry.

A request names an activity, a channel subset, a mode and a page. The
coordinator fetches the series, cuts the requested window, renders it
through the ModeDispatcher and wraps the result in a Page with navigation
instructions and a token estimate.

Page sizing:
  - page_size None or 0 → configured default_page_size
  - page_size FULL_DATASET (-1) → whole series as page 1 of 1; refused for
    raw mode when the series exceeds the context budget
  - otherwise the page shrinks until it fits the context budget. It never
    grows past the request or max_page_size, and never shrinks below
    MIN_PAGE_SIZE unless the request was already smaller
"""
import logging
import math
from typing import Any, List, Optional

from fitstream.analysis.laps import distance_segments
from fitstream.analysis.timeseries import CHANNELS, Lap, TimeSeries
from fitstream.config import StreamProcessingSettings
from fitstream.processing.dispatcher import ModeDispatcher
from fitstream.processing.errors import ErrorKind, ProcessingError
from fitstream.processing.interfaces import ActivityDataSource
from fitstream.processing.models import (
    FULL_DATASET,
    Page,
    ProcessingParams,
    ProcessingRequest,
    TimeRange,
)
from fitstream.processing.modes import ProcessingMode, parse_mode
from fitstream.render.pages import build_page_instructions

logger = logging.getLogger(__name__)

MIN_PAGE_SIZE = 100
# Share of the budget a suggested page size aims to use.
PAGE_BUDGET_FILL = 0.8


class PaginationCoordinator:
    def __init__(
        self,
        data_source: ActivityDataSource,
        dispatcher: ModeDispatcher,
        settings: StreamProcessingSettings,
    ):
        self.data_source = data_source
        self.dispatcher = dispatcher
        self.settings = settings
        self.estimator = dispatcher.estimator

    # ─── Validation ────────────────────────────────────────────────────────────

    def validate_request(self, request: ProcessingRequest) -> ProcessingMode:
        """
        Check a request before anything is fetched.

        Returns:
            The parsed ProcessingMode.

        Raises:
            ProcessingError(invalid_request): naming the violated constraint.
        """
        def invalid(message: str, key: str, value: Any) -> ProcessingError:
            return ProcessingError(
                ErrorKind.INVALID_REQUEST, message,
                activity_id=request.activity_id, mode=request.mode,
            ).with_context(key, value)

        if request.activity_id <= 0:
            raise invalid("activity_id must be positive", "activity_id", request.activity_id)
        if not request.channels:
            raise invalid("at least one channel must be requested", "channels", request.channels)
        unknown = [c for c in request.channels if c not in CHANNELS]
        if unknown:
            raise invalid(f"unknown channels: {', '.join(unknown)}", "channels", unknown)
        if request.page_number < 1:
            raise invalid("page_number must be at least 1", "page_number", request.page_number)

        size = request.page_size
        if size is not None and size != FULL_DATASET:
            if size < 0 or size > self.settings.max_page_size:
                raise invalid(
                    f"page_size must be between 1 and {self.settings.max_page_size}, "
                    f"or {FULL_DATASET} for the full dataset",
                    "page_size", size,
                )
        if request.resolution not in self.settings.resolutions:
            raise invalid(
                f"resolution must be one of {', '.join(self.settings.resolutions)}",
                "resolution", request.resolution,
            )

        mode = parse_mode(request.mode)
        if mode is ProcessingMode.AI_SUMMARY and not request.summary_prompt.strip():
            raise invalid("ai-summary mode requires a summary prompt", "missing", "summary_prompt")
        return mode

    # ─── Page Sizing ───────────────────────────────────────────────────────────

    def fit_page_size(self, series: TimeSeries, requested: int, budget: int) -> int:
        """
        Largest page no bigger than `requested` whose raw cost fits `budget`.
        Shrinking stops at MIN_PAGE_SIZE, or at `requested` when that is smaller.
        """
        size = min(requested, self.settings.max_page_size)
        if self.estimator.estimate_points(series, size) <= budget:
            return size

        per_point = self.estimator.tokens_per_point(series)
        fitted = int(budget / per_point) if per_point > 0 else size
        fitted = min(size, max(MIN_PAGE_SIZE, fitted))
        logger.info("Reduced page size from %d to %d to fit %d-token budget", size, fitted, budget)
        return fitted

    def optimal_page_size(self, series: TimeSeries, budget: int) -> int:
        """Page size that uses about 80% of `budget`, clamped to the allowed range."""
        per_point = self.estimator.tokens_per_point(series)
        if per_point <= 0:
            return self.settings.default_page_size
        size = int(budget * PAGE_BUDGET_FILL / per_point)
        return max(MIN_PAGE_SIZE, min(size, self.settings.max_page_size))

    # ─── Processing ────────────────────────────────────────────────────────────

    async def process_paginated_request(
        self,
        user: Any,
        request: ProcessingRequest,
        context_budget: Optional[int] = None,
    ) -> Page:
        """
        Deliver one page of an activity's telemetry.

        Args:
            user: Opaque caller identity, passed through to the data source.
            request: What to fetch and how to render it.
            context_budget: Tokens the caller can spend on this page. Defaults
                to max_context_tokens minus context_safety_margin.

        Raises:
            ProcessingError: invalid_request for bad requests or a full
                dataset too large for raw mode; processing_failure when the
                data source fails; data_corrupted when it returns nothing.
        """
        mode = self.validate_request(request)
        budget = context_budget
        if budget is None:
            budget = self.settings.max_context_tokens - self.settings.context_safety_margin
        if budget <= 0:
            raise ProcessingError(
                ErrorKind.INVALID_REQUEST, "no context budget left for this page",
                activity_id=request.activity_id, mode=mode.value,
            ).with_context("context_budget", budget)

        series = await self._fetch_series(user, request, mode)
        total_points = series.point_count()

        if request.page_size == FULL_DATASET:
            estimated = self.estimator.estimate_cost(series)
            if mode is ProcessingMode.RAW and estimated > budget:
                raise ProcessingError(
                    ErrorKind.INVALID_REQUEST,
                    f"full dataset (~{estimated} tokens) exceeds the {budget}-token context "
                    f"budget for raw mode; use derived or ai-summary instead",
                    activity_id=request.activity_id, mode=mode.value,
                    context=[
                        ("estimated_tokens", estimated),
                        ("context_budget", budget),
                        ("suggested_modes", [ProcessingMode.DERIVED.value, ProcessingMode.AI_SUMMARY.value]),
                    ],
                )
            if request.page_number > 1:
                raise ProcessingError(
                    ErrorKind.INVALID_REQUEST, "the full dataset is a single page",
                    activity_id=request.activity_id, mode=mode.value,
                ).with_context("page_number", request.page_number)
            page_size = FULL_DATASET
            total_pages = 1
            start = 0
            window = series
        else:
            page_size = self.fit_page_size(
                series, request.page_size or self.settings.default_page_size, budget,
            )
            total_pages = max(1, math.ceil(total_points / page_size))
            if request.page_number > total_pages:
                raise ProcessingError(
                    ErrorKind.INVALID_REQUEST,
                    f"page {request.page_number} is beyond the last page ({total_pages})",
                    activity_id=request.activity_id, mode=mode.value,
                    context=[("page_number", request.page_number), ("total_pages", total_pages)],
                )
            start = (request.page_number - 1) * page_size
            window = series.slice(start, start + page_size)

        laps = None
        if total_pages == 1 and mode in (ProcessingMode.DERIVED, ProcessingMode.AI_SUMMARY):
            laps = await self._fetch_laps(user, request.activity_id, series)

        params = ProcessingParams(
            activity_id=request.activity_id,
            correlation_id=request.correlation_id,
            window_start=start,
            summary_prompt=request.summary_prompt,
            laps=laps,
        )
        result = await self.dispatcher.dispatch(mode, window, params)

        has_next = request.page_number < total_pages
        instructions = build_page_instructions(
            request.activity_id,
            request.page_number,
            total_pages,
            page_size,
            result.mode,
            suggested_page_size=self.optimal_page_size(series, budget),
        )
        return Page(
            activity_id=request.activity_id,
            page_number=request.page_number,
            total_pages=total_pages,
            processing_mode=result.mode,
            data=result.content,
            time_range=_time_range(window, start),
            instructions=instructions,
            has_next_page=has_next,
            estimated_tokens=self.estimator.estimate_text(result.content),
            correlation_id=request.correlation_id,
        )

    async def _fetch_series(self, user: Any, request: ProcessingRequest, mode: ProcessingMode) -> TimeSeries:
        try:
            series = await self.data_source.get_series(
                user, request.activity_id, request.channels, request.resolution,
            )
        except ProcessingError:
            raise
        except Exception as exc:
            raise ProcessingError(
                ErrorKind.PROCESSING_FAILURE, "failed to fetch activity streams",
                activity_id=request.activity_id, mode=mode.value,
                context=[("channels", request.channels), ("resolution", request.resolution)],
            ) from exc

        if series is None or series.is_empty():
            raise ProcessingError(
                ErrorKind.DATA_CORRUPTED, "activity has no stream data",
                activity_id=request.activity_id, mode=mode.value,
            ).with_context("channels", request.channels)
        return series

    async def _fetch_laps(self, user: Any, activity_id: int, series: TimeSeries) -> Optional[List[Lap]]:
        """
        Recorded laps, else 1 km distance segments. Lap errors never fail the page.

        Lap indices refer to the full-resolution recording; when the series
        was thinned by a resolution hint they no longer line up, so the
        recorded laps are dropped in favour of segments.
        """
        try:
            laps = await self.data_source.get_laps(user, activity_id)
        except Exception as exc:
            logger.warning("Could not fetch laps for activity %s: %s", activity_id, exc)
            laps = []

        points = series.point_count()
        if laps and any(lap.end_index >= points for lap in laps):
            logger.info("Lap indices exceed %d samples for activity %s, using distance segments",
                        points, activity_id)
            laps = []
        return laps or distance_segments(series) or None


def _time_range(window: TimeSeries, start: int) -> TimeRange:
    if window.time:
        return TimeRange(start_time=float(window.time[0]), end_time=float(window.time[-1]))
    # no time channel: fall back to sample indices
    return TimeRange(start_time=float(start), end_time=float(start + max(window.point_count() - 1, 0)))
