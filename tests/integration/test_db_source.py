"""Integration tests for DbActivityDataSource against in-memory SQLite."""
import pytest

from fitstream.models.activity import ActivityDatapoint
from fitstream.processing.dispatcher import ModeDispatcher
from fitstream.processing.errors import ErrorKind, ProcessingError
from fitstream.processing.models import FULL_DATASET, ProcessingRequest
from fitstream.processing.pagination import PaginationCoordinator
from fitstream.sources.db_source import (
    ActivityNotFoundError,
    DbActivityDataSource,
    datapoints_to_series,
)


@pytest.fixture
def source(engine):
    return DbActivityDataSource(engine)


# ─── Row Conversion ───────────────────────────────────────────────────────────

class TestDatapointsToSeries:
    def test_missing_samples_become_zero(self):
        rows = [
            ActivityDatapoint(activity_id=1, elapsed_seconds=0, heart_rate=120),
            ActivityDatapoint(activity_id=1, elapsed_seconds=1, heart_rate=None),
            ActivityDatapoint(activity_id=1, elapsed_seconds=2, heart_rate=124),
        ]
        series = datapoints_to_series(rows)
        assert series.time == [0, 1, 2]
        assert series.heart_rate == [120, 0, 124]

    def test_absent_channels_left_empty(self):
        rows = [ActivityDatapoint(activity_id=1, elapsed_seconds=t, heart_rate=130) for t in range(3)]
        series = datapoints_to_series(rows)
        assert series.power == []
        assert series.latlng == []
        assert series.available_channels() == ["time", "heartrate"]

    def test_gps_gap_becomes_origin(self):
        rows = [
            ActivityDatapoint(activity_id=1, elapsed_seconds=0, lat=45.0, lon=7.0),
            ActivityDatapoint(activity_id=1, elapsed_seconds=1),
        ]
        assert datapoints_to_series(rows).latlng == [(45.0, 7.0), (0.0, 0.0)]


# ─── Source ───────────────────────────────────────────────────────────────────

class TestDbActivityDataSource:
    @pytest.mark.asyncio
    async def test_get_series_selects_channels(self, source, seeded_activity):
        series = await source.get_series(1, seeded_activity.id, ["time", "heartrate"], "high")
        assert series.point_count() == 1200
        assert series.heart_rate[0] == 130
        assert series.heart_rate[-1] == 149
        assert series.power == []

    @pytest.mark.asyncio
    async def test_resolution_thins_series(self, source, seeded_activity):
        series = await source.get_series(1, seeded_activity.id, ["time", "watts"], "low")
        assert series.point_count() == 100
        assert series.time[0] == 0
        assert series.time[-1] == 1199

    @pytest.mark.asyncio
    async def test_other_users_activity_not_found(self, source, seeded_activity):
        with pytest.raises(ActivityNotFoundError):
            await source.get_series(2, seeded_activity.id, ["time"], "high")

    @pytest.mark.asyncio
    async def test_missing_activity(self, source, seeded_activity):
        with pytest.raises(ActivityNotFoundError):
            await source.get_laps(1, 999)

    @pytest.mark.asyncio
    async def test_get_laps(self, source, seeded_activity):
        laps = await source.get_laps(1, seeded_activity.id)
        assert [lap.name for lap in laps] == ["Out", "Back"]
        assert laps[0].average_speed == pytest.approx(8.2)
        assert laps[1].start_index == 600
        assert laps[1].end_index == 1199


# ─── Coordinator over the database ────────────────────────────────────────────

class TestCoordinatorOverDb:
    @pytest.mark.asyncio
    async def test_derived_full_dataset_uses_recorded_laps(self, source, seeded_activity, stream_settings):
        coordinator = PaginationCoordinator(source, ModeDispatcher(stream_settings), stream_settings)
        page = await coordinator.process_paginated_request(1, ProcessingRequest(
            activity_id=seeded_activity.id, mode="derived", page_size=FULL_DATASET,
            channels=["time", "heartrate", "watts", "distance"],
        ))
        assert page.total_pages == 1
        assert "### Laps (2)" in page.data
        assert "| 1 | Out |" in page.data

    @pytest.mark.asyncio
    async def test_low_resolution_replaces_laps_with_segments(self, source, seeded_activity, stream_settings):
        coordinator = PaginationCoordinator(source, ModeDispatcher(stream_settings), stream_settings)
        page = await coordinator.process_paginated_request(1, ProcessingRequest(
            activity_id=seeded_activity.id, mode="derived", resolution="low",
            channels=["time", "heartrate", "distance"],
        ))
        # 9.6 km ride cut into 1 km segments
        assert "### Laps (10)" in page.data
        assert "Segment 1" in page.data

    @pytest.mark.asyncio
    async def test_missing_activity_is_processing_failure(self, source, seeded_activity, stream_settings):
        coordinator = PaginationCoordinator(source, ModeDispatcher(stream_settings), stream_settings)
        with pytest.raises(ProcessingError) as exc_info:
            await coordinator.process_paginated_request(1, ProcessingRequest(activity_id=999))
        assert exc_info.value.kind == ErrorKind.PROCESSING_FAILURE
        assert isinstance(exc_info.value.__cause__, ActivityNotFoundError)
