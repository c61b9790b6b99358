"""
TimeSeries and Lap dataclasses, plus conversion from raw stream dicts.

TimeSeries is the in-memory representation every analysis and processing
module works on. It is a plain Python dataclass with no DB dependencies. Each
channel is an independently optional list; an empty list means the device did
not record it. Channels are time-aligned by index but may differ in length, so
consumers must index defensively.

Public channel keys follow the Strava streams API (`heartrate`, `watts`,
`velocity_smooth`, ...) since that is what callers ask for.
"""
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Public channel key → TimeSeries attribute, in canonical order.
CHANNELS: Dict[str, str] = {
    "time": "time",
    "distance": "distance",
    "latlng": "latlng",
    "altitude": "altitude",
    "velocity_smooth": "velocity",
    "heartrate": "heart_rate",
    "cadence": "cadence",
    "watts": "power",
    "temp": "temperature",
    "moving": "moving",
    "grade_smooth": "grade",
}


@dataclass
class TimeSeries:
    """
    One activity's telemetry. `time` (seconds from start) is the reference axis.
    """

    time: List[int] = field(default_factory=list)               # seconds
    distance: List[float] = field(default_factory=list)         # cumulative meters
    latlng: List[Tuple[float, float]] = field(default_factory=list)
    altitude: List[float] = field(default_factory=list)         # meters
    velocity: List[float] = field(default_factory=list)         # m/s
    heart_rate: List[int] = field(default_factory=list)         # bpm
    cadence: List[int] = field(default_factory=list)            # rpm
    power: List[int] = field(default_factory=list)              # watts
    temperature: List[float] = field(default_factory=list)      # Celsius
    moving: List[bool] = field(default_factory=list)
    grade: List[float] = field(default_factory=list)            # percent

    def channel(self, key: str) -> list:
        """Return the channel for a public key ("heartrate", "watts", ...)."""
        return getattr(self, CHANNELS[key])

    def available_channels(self) -> List[str]:
        """Public keys of the populated channels, in canonical order."""
        return [key for key, attr in CHANNELS.items() if getattr(self, attr)]

    def point_count(self) -> int:
        """Length of the longest channel."""
        return max((len(getattr(self, f.name)) for f in fields(self)), default=0)

    def is_empty(self) -> bool:
        return self.point_count() == 0

    def slice(self, start: int, end: int) -> "TimeSeries":
        """
        Window [start, end) applied to every channel.
        Channels shorter than the window are clamped, never padded.
        """
        start = max(start, 0)
        end = max(end, start)
        return TimeSeries(**{f.name: list(getattr(self, f.name)[start:end]) for f in fields(self)})

    def select(self, keys: Iterable[str]) -> "TimeSeries":
        """Copy holding only the requested channels (time is always kept)."""
        wanted = {CHANNELS[k] for k in keys if k in CHANNELS}
        wanted.add("time")
        return TimeSeries(**{
            f.name: list(getattr(self, f.name)) for f in fields(self) if f.name in wanted
        })


@dataclass
class Lap:
    """
    One recorded lap. start_index/end_index are inclusive indices into the
    activity's TimeSeries. Averages come from the device and may be missing.
    """

    name: str
    start_index: int
    end_index: int
    elapsed_time: float = 0.0                  # seconds
    distance: float = 0.0                      # meters
    average_speed: Optional[float] = None      # m/s
    max_speed: Optional[float] = None
    average_heartrate: Optional[float] = None  # bpm
    max_heartrate: Optional[float] = None
    average_watts: Optional[float] = None
    max_watts: Optional[float] = None


def _stream_values(raw: Any) -> list:
    # Accepts both a bare list and the Strava {"data": [...]} envelope
    if raw is None:
        return []
    if isinstance(raw, dict):
        return list(raw.get("data") or [])
    return list(raw)


def from_streams(streams: Dict[str, Any]) -> TimeSeries:
    """
    Build a TimeSeries from a dict keyed by public channel key.

    Unknown keys are ignored. latlng pairs are normalised to tuples.
    """
    values = {}
    for key, attr in CHANNELS.items():
        data = _stream_values(streams.get(key))
        if attr == "latlng":
            data = [tuple(pair) for pair in data]
        values[attr] = data
    return TimeSeries(**values)


def laps_from_dicts(laps: List[Dict[str, Any]]) -> List[Lap]:
    """Convert Strava-style lap dicts into Lap instances."""
    return [
        Lap(
            name=lap.get("name") or f"Lap {i + 1}",
            start_index=int(lap.get("start_index", 0)),
            end_index=int(lap.get("end_index", 0)),
            elapsed_time=float(lap.get("elapsed_time") or 0.0),
            distance=float(lap.get("distance") or 0.0),
            average_speed=lap.get("average_speed"),
            max_speed=lap.get("max_speed"),
            average_heartrate=lap.get("average_heartrate"),
            max_heartrate=lap.get("max_heartrate"),
            average_watts=lap.get("average_watts"),
            max_watts=lap.get("max_watts"),
        )
        for i, lap in enumerate(laps)
    ]


def downsample(series: TimeSeries, max_points: int) -> TimeSeries:
    """
    Evenly thin a series to at most max_points samples.
    The first and last samples are always kept.
    """
    n = series.point_count()
    if max_points <= 0 or n <= max_points:
        return series
    if max_points == 1:
        indices = [0]
    else:
        step = (n - 1) / (max_points - 1)
        indices = sorted({int(round(i * step)) for i in range(max_points)})

    thinned = {}
    for f in fields(series):
        values = getattr(series, f.name)
        thinned[f.name] = [values[i] for i in indices if i < len(values)]
    return TimeSeries(**thinned)
