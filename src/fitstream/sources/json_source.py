"""
File-backed ActivityDataSource for exported activities.

The file holds either a bare streams dict keyed by channel key, or
{"activity_id": ..., "streams": {...}, "laps": [...]}.
"""
import json
from pathlib import Path
from typing import Any, Dict, List

from fitstream.analysis.timeseries import Lap, TimeSeries, downsample, from_streams, laps_from_dicts
from fitstream.sources.db_source import RESOLUTION_POINTS


def load_activity_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if "streams" not in data:
        data = {"streams": data}
    return data


class JsonFileDataSource:
    """Serves one exported activity; the activity id is not checked."""

    def __init__(self, path: Path):
        self._data = load_activity_file(path)

    @property
    def activity_id(self) -> int:
        return int(self._data.get("activity_id") or 1)

    def series(self) -> TimeSeries:
        return from_streams(self._data["streams"])

    def laps(self) -> List[Lap]:
        return laps_from_dicts(self._data.get("laps") or [])

    async def get_series(
        self, user: Any, activity_id: int, channels: List[str], resolution: str,
    ) -> TimeSeries:
        return downsample(self.series().select(channels), RESOLUTION_POINTS.get(resolution, 0))

    async def get_laps(self, user: Any, activity_id: int) -> List[Lap]:
        return self.laps()
