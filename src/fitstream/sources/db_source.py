"""
SQL-backed ActivityDataSource.

Reads ActivityDatapoint / ActivityLap rows and converts them into the
analysis layer's TimeSeries and Lap types. SQLAlchemy sessions are
synchronous; queries run in the thread pool executor so they don't block
the event loop.

Resolution hints mirror the Strava streams API: at most 100 / 1000 / 10000
samples for low / medium / high.
"""
import asyncio
import logging
from typing import Any, List, Optional, Sequence

from sqlmodel import Session, select

from fitstream.analysis.timeseries import Lap, TimeSeries, downsample
from fitstream.models.activity import Activity, ActivityDatapoint, ActivityLap

logger = logging.getLogger(__name__)

RESOLUTION_POINTS = {"low": 100, "medium": 1000, "high": 10000}


class ActivityNotFoundError(LookupError):
    """No activity with that id for this user."""


def datapoints_to_series(rows: Sequence[ActivityDatapoint]) -> TimeSeries:
    """
    Convert ordered datapoint rows into a TimeSeries.

    A channel is populated only when at least one row carries it. Within a
    populated channel, missing samples become zero (False for moving,
    (0, 0) for GPS), which the statistics layer treats as a dropout.
    """
    def channel(attr: str, missing=0) -> list:
        values = [getattr(r, attr) for r in rows]
        if all(v is None for v in values):
            return []
        return [missing if v is None else v for v in values]

    has_gps = any(r.lat is not None and r.lon is not None for r in rows)
    return TimeSeries(
        time=[r.elapsed_seconds for r in rows],
        distance=channel("distance_meters"),
        latlng=[(r.lat or 0.0, r.lon or 0.0) for r in rows] if has_gps else [],
        altitude=channel("altitude_meters"),
        velocity=channel("speed_ms"),
        heart_rate=channel("heart_rate"),
        cadence=channel("cadence"),
        power=channel("power_watts"),
        temperature=channel("temperature_c"),
        moving=channel("moving", missing=False),
        grade=channel("grade_pct"),
    )


def lap_rows_to_laps(rows: Sequence[ActivityLap]) -> List[Lap]:
    return [
        Lap(
            name=row.name or f"Lap {row.lap_index + 1}",
            start_index=row.start_index,
            end_index=row.end_index,
            elapsed_time=row.elapsed_seconds,
            distance=row.distance_meters,
            average_speed=row.avg_speed_ms,
            max_speed=row.max_speed_ms,
            average_heartrate=row.avg_hr,
            max_heartrate=row.max_hr,
            average_watts=row.avg_power,
            max_watts=row.max_power,
        )
        for row in rows
    ]


class DbActivityDataSource:
    """ActivityDataSource over the local SQL database."""

    def __init__(self, engine):
        self.engine = engine

    async def _run(self, fn, *args):
        """Run a blocking DB call in the thread pool."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: fn(*args))

    async def get_series(
        self, user: Any, activity_id: int, channels: List[str], resolution: str,
    ) -> TimeSeries:
        return await self._run(self._get_series_sync, user, activity_id, channels, resolution)

    async def get_laps(self, user: Any, activity_id: int) -> List[Lap]:
        return await self._run(self._get_laps_sync, user, activity_id)

    def _check_activity(self, session: Session, user: Optional[int], activity_id: int) -> None:
        activity = session.get(Activity, activity_id)
        if activity is None or (user is not None and activity.user_id != user):
            raise ActivityNotFoundError(f"activity {activity_id} not found")

    def _get_series_sync(
        self, user: Optional[int], activity_id: int, channels: List[str], resolution: str,
    ) -> TimeSeries:
        with Session(self.engine) as session:
            self._check_activity(session, user, activity_id)
            rows = session.exec(
                select(ActivityDatapoint)
                .where(ActivityDatapoint.activity_id == activity_id)
                .order_by(ActivityDatapoint.elapsed_seconds)
            ).all()
            series = datapoints_to_series(rows)

        selected = series.select(channels)
        thinned = downsample(selected, RESOLUTION_POINTS.get(resolution, 0))
        logger.debug(
            "Loaded activity %s: %d rows, %d after %s resolution",
            activity_id, len(rows), thinned.point_count(), resolution,
        )
        return thinned

    def _get_laps_sync(self, user: Optional[int], activity_id: int) -> List[Lap]:
        with Session(self.engine) as session:
            self._check_activity(session, user, activity_id)
            rows = session.exec(
                select(ActivityLap)
                .where(ActivityLap.activity_id == activity_id)
                .order_by(ActivityLap.lap_index)
            ).all()
            return lap_rows_to_laps(rows)
