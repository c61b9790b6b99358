"""Collaborators the engine consumes but does not implement itself."""
from typing import Any, List, Protocol

from fitstream.analysis.timeseries import Lap, TimeSeries
from fitstream.processing.models import Narrative


class ActivityDataSource(Protocol):
    async def get_series(
        self, user: Any, activity_id: int, channels: List[str], resolution: str,
    ) -> TimeSeries:
        """Fetch the requested channels of one activity at a resolution hint."""
        ...

    async def get_laps(self, user: Any, activity_id: int) -> List[Lap]:
        ...


class SummaryGenerator(Protocol):
    async def generate(self, series: TimeSeries, activity_id: int, prompt: str) -> Narrative:
        """Produce a narrative summary of `series` that answers `prompt`."""
        ...
