"""
Derived-feature extraction: turns a full TimeSeries into a compact,
analytically useful DerivedFeatures record.

Pieces, all computed from one read-only TimeSeries snapshot:
  - summary:            duration, distance, elevation, averages and peaks,
                        normalized power, heart-rate drift
  - statistics:         per-channel distribution (MetricStats), moving-time
                        share, GPS extent
  - inflection points:  direction reversals whose incoming leg is larger than
                        a per-channel threshold
  - trends:             fixed 30 s windows whose net change exceeds a
                        per-channel threshold
  - spikes:             samples more than 2.5 standard deviations from the mean
  - sample data:        values at 0 / 25 / 50 / 75 / 100 % of the series
  - lap analysis:       only when laps are supplied

Channels are always visited in METRIC_CHANNELS order and every list is
sorted by time with a stable sort, so the same input always yields an equal
DerivedFeatures.
"""
import logging
from dataclasses import dataclass, field
from itertools import groupby
from statistics import mean, pstdev
from typing import Dict, List, Optional, Sequence, Tuple

from fitstream.analysis.laps import LapAnalysis, analyze_laps
from fitstream.analysis.stats import (
    BooleanStats,
    LocationStats,
    MetricStats,
    boolean_stats,
    elevation_change,
    heart_rate_drift,
    location_stats,
    metric_stats,
    normalized_power,
)
from fitstream.analysis.timeseries import Lap, TimeSeries
from fitstream.processing.errors import ErrorKind, ProcessingError

logger = logging.getLogger(__name__)

# Metric name → TimeSeries attribute, in extraction order.
METRIC_CHANNELS: Dict[str, str] = {
    "heart_rate": "heart_rate",
    "power": "power",
    "speed": "velocity",
    "cadence": "cadence",
    "altitude": "altitude",
}

INFLECTION_THRESHOLDS = {"heart_rate": 5.0, "power": 10.0, "speed": 1.0, "altitude": 5.0}
TREND_THRESHOLDS = {"heart_rate": 8.0, "power": 25.0, "speed": 1.0, "altitude": 5.0}
SPIKE_CHANNELS = ("heart_rate", "power", "speed")

TREND_WINDOW_SECONDS = 30
SPIKE_SIGMA = 2.5

MAX_INFLECTION_POINTS = 20
MAX_TRENDS = 15
MAX_SPIKES = 10

# Sensor channels where zero or below means "no reading" at that sample.
_SAMPLE_SENSOR_CHANNELS = (
    ("heart_rate", "heart_rate"),
    ("power", "power"),
    ("speed", "velocity"),
    ("cadence", "cadence"),
)
_SAMPLE_PLAIN_CHANNELS = (
    ("altitude", "altitude"),
    ("distance", "distance"),
    ("temperature", "temperature"),
    ("grade", "grade"),
)


# ─── Result Types ──────────────────────────────────────────────────────────────

@dataclass
class FeatureSummary:
    total_data_points: int
    duration: float                     # seconds, last - first time
    total_distance: float               # meters
    elevation_gain: float = 0.0
    elevation_loss: float = 0.0
    avg_speed: float = 0.0
    max_speed: float = 0.0
    avg_heart_rate: float = 0.0
    max_heart_rate: float = 0.0
    avg_power: float = 0.0
    max_power: float = 0.0
    normalized_power: float = 0.0
    heart_rate_drift: float = 0.0       # bpm per hour
    avg_cadence: float = 0.0
    max_cadence: float = 0.0
    avg_temperature: Optional[float] = None
    moving_time_percent: Optional[float] = None
    channels: List[str] = field(default_factory=list)


@dataclass
class StreamStatistics:
    heart_rate: Optional[MetricStats] = None
    power: Optional[MetricStats] = None
    speed: Optional[MetricStats] = None
    cadence: Optional[MetricStats] = None
    altitude: Optional[MetricStats] = None
    distance: Optional[MetricStats] = None
    temperature: Optional[MetricStats] = None
    grade: Optional[MetricStats] = None
    moving: Optional[BooleanStats] = None
    location: Optional[LocationStats] = None

    def metrics(self) -> List[Tuple[str, MetricStats]]:
        """Populated numeric channels as (name, stats), in a fixed order."""
        names = ("heart_rate", "power", "speed", "cadence", "altitude",
                 "distance", "temperature", "grade")
        return [(n, getattr(self, n)) for n in names if getattr(self, n) is not None]


@dataclass
class InflectionPoint:
    index: int
    time: float
    channel: str
    direction: str      # "peak" | "valley"
    value: float
    magnitude: float    # size of the leg ending at this reversal


@dataclass
class Trend:
    channel: str
    start_index: int
    end_index: int
    start_time: float
    end_time: float
    direction: str      # "increasing" | "decreasing"
    change: float       # signed net change across the window
    rate_per_minute: float


@dataclass
class Spike:
    channel: str
    index: int
    time: float
    value: float
    deviation: float    # signed, in standard deviations


@dataclass
class SamplePoint:
    index: int
    time: float
    values: Dict[str, float] = field(default_factory=dict)


@dataclass
class DerivedFeatures:
    summary: FeatureSummary
    statistics: StreamStatistics
    inflection_points: List[InflectionPoint] = field(default_factory=list)
    trends: List[Trend] = field(default_factory=list)
    spikes: List[Spike] = field(default_factory=list)
    sample_data: List[SamplePoint] = field(default_factory=list)
    lap_analysis: Optional[LapAnalysis] = None


# ─── Helpers ───────────────────────────────────────────────────────────────────

def _time_at(series: TimeSeries, index: int) -> float:
    """Timestamp for a sample; falls back to the index (1 Hz) without a time channel."""
    if index < len(series.time):
        return float(series.time[index])
    return float(index)


def _timed_values(series: TimeSeries, name: str) -> list:
    """
    Channel values that line up with the time axis. Samples past the end of
    `time` have no timestamp and are left out; without a time channel every
    sample counts and its index stands in for the timestamp.
    """
    values = getattr(series, METRIC_CHANNELS[name])
    if series.time:
        return values[:len(series.time)]
    return values


def _mean_max(stats: Optional[MetricStats]) -> Tuple[float, float]:
    if stats is None:
        return 0.0, 0.0
    return stats.mean, stats.max


def _keep_largest(items: list, limit: int, key) -> list:
    """Keep the `limit` largest items by key, preserving their original order."""
    if len(items) <= limit:
        return items
    ranked = sorted(range(len(items)), key=lambda i: key(items[i]), reverse=True)[:limit]
    return [items[i] for i in sorted(ranked)]


# ─── Summary & Statistics ──────────────────────────────────────────────────────

def compute_statistics(series: TimeSeries) -> StreamStatistics:
    return StreamStatistics(
        heart_rate=metric_stats(series.heart_rate),
        power=metric_stats(series.power),
        speed=metric_stats(series.velocity),
        cadence=metric_stats(series.cadence),
        altitude=metric_stats(series.altitude),
        distance=metric_stats(series.distance),
        temperature=metric_stats(series.temperature),
        grade=metric_stats(series.grade),
        moving=boolean_stats(series.moving),
        location=location_stats(series.latlng),
    )


def compute_summary(series: TimeSeries, statistics: StreamStatistics) -> FeatureSummary:
    duration = 0.0
    if len(series.time) >= 2:
        duration = float(series.time[-1] - series.time[0])

    distance = 0.0
    if len(series.distance) >= 2:
        distance = float(series.distance[-1] - series.distance[0])

    gain, loss = elevation_change(series.altitude)
    avg_speed, max_speed = _mean_max(statistics.speed)
    avg_hr, max_hr = _mean_max(statistics.heart_rate)
    avg_power, max_power = _mean_max(statistics.power)
    avg_cadence, max_cadence = _mean_max(statistics.cadence)

    return FeatureSummary(
        total_data_points=series.point_count(),
        duration=duration,
        total_distance=distance,
        elevation_gain=gain,
        elevation_loss=loss,
        avg_speed=avg_speed,
        max_speed=max_speed,
        avg_heart_rate=avg_hr,
        max_heart_rate=max_hr,
        avg_power=avg_power,
        max_power=max_power,
        normalized_power=normalized_power(series.power),
        heart_rate_drift=heart_rate_drift(series.heart_rate, series.time),
        avg_cadence=avg_cadence,
        max_cadence=max_cadence,
        avg_temperature=statistics.temperature.mean if statistics.temperature else None,
        moving_time_percent=statistics.moving.true_percent if statistics.moving else None,
        channels=series.available_channels(),
    )


# ─── Inflection Points ─────────────────────────────────────────────────────────

def _channel_inflections(
    series: TimeSeries, name: str, values: Sequence[float], threshold: float,
) -> List[InflectionPoint]:
    points = []
    direction = 0   # +1 rising, -1 falling, 0 not yet known
    leg_start = 0
    for i in range(1, len(values)):
        delta = values[i] - values[i - 1]
        if delta == 0:
            continue
        step = 1 if delta > 0 else -1
        if direction == 0:
            direction = step
            continue
        if step != direction:
            pivot = i - 1
            magnitude = abs(values[pivot] - values[leg_start])
            if magnitude > threshold:
                points.append(InflectionPoint(
                    index=pivot,
                    time=_time_at(series, pivot),
                    channel=name,
                    direction="peak" if direction > 0 else "valley",
                    value=float(values[pivot]),
                    magnitude=float(magnitude),
                ))
            leg_start = pivot
            direction = step
    return points


def find_inflection_points(series: TimeSeries) -> List[InflectionPoint]:
    """
    Local reversals in heart rate, power, speed and altitude.

    Flat steps are skipped, so a plateau followed by a drop reports its last
    sample as the peak. Only the MAX_INFLECTION_POINTS largest are kept.
    """
    points: List[InflectionPoint] = []
    for name, threshold in INFLECTION_THRESHOLDS.items():
        values = _timed_values(series, name)
        points.extend(_channel_inflections(series, name, values, threshold))

    points.sort(key=lambda p: p.time)
    return _keep_largest(points, MAX_INFLECTION_POINTS, key=lambda p: p.magnitude)


# ─── Trends ────────────────────────────────────────────────────────────────────

def _channel_trends(
    series: TimeSeries, name: str, values: Sequence[float], threshold: float,
) -> List[Trend]:
    n = len(values)
    if n < 2:
        return []
    origin = _time_at(series, 0)

    def window_of(i: int) -> int:
        return int((_time_at(series, i) - origin) // TREND_WINDOW_SECONDS)

    trends = []
    for _, group in groupby(range(n), key=window_of):
        indices = list(group)
        first, last = indices[0], indices[-1]
        if first == last:
            continue
        change = float(values[last] - values[first])
        if abs(change) <= threshold:
            continue
        start_time = _time_at(series, first)
        end_time = _time_at(series, last)
        elapsed = end_time - start_time
        trends.append(Trend(
            channel=name,
            start_index=first,
            end_index=last,
            start_time=start_time,
            end_time=end_time,
            direction="increasing" if change > 0 else "decreasing",
            change=change,
            rate_per_minute=change / elapsed * 60.0 if elapsed > 0 else 0.0,
        ))
    return trends


def find_trends(series: TimeSeries) -> List[Trend]:
    """
    Sustained changes over fixed 30-second windows anchored at the first
    timestamp. Each window stands alone; adjacent windows are not merged.
    """
    trends: List[Trend] = []
    for name, threshold in TREND_THRESHOLDS.items():
        values = _timed_values(series, name)
        trends.extend(_channel_trends(series, name, values, threshold))

    trends.sort(key=lambda t: t.start_time)
    return _keep_largest(trends, MAX_TRENDS, key=lambda t: abs(t.change))


# ─── Spikes ────────────────────────────────────────────────────────────────────

def find_spikes(series: TimeSeries) -> List[Spike]:
    spikes: List[Spike] = []
    for name in SPIKE_CHANNELS:
        values = _timed_values(series, name)
        if len(values) < 3:
            continue
        avg = mean(values)
        std = pstdev(values)
        if std == 0:
            continue
        for i, value in enumerate(values):
            deviation = (value - avg) / std
            if abs(deviation) > SPIKE_SIGMA:
                spikes.append(Spike(
                    channel=name,
                    index=i,
                    time=_time_at(series, i),
                    value=float(value),
                    deviation=deviation,
                ))

    spikes.sort(key=lambda s: s.time)
    return _keep_largest(spikes, MAX_SPIKES, key=lambda s: abs(s.deviation))


# ─── Sample Data ───────────────────────────────────────────────────────────────

def sample_points(series: TimeSeries) -> List[SamplePoint]:
    """
    Five-point skeleton at 0 / 25 / 50 / 75 / 100 % of the series.
    Short series yield fewer points; an index is never repeated.
    """
    n = len(series.time) or series.point_count()
    if n == 0:
        return []

    indices: List[int] = []
    for i in (0, n // 4, n // 2, 3 * n // 4, n - 1):
        if i not in indices:
            indices.append(i)

    samples = []
    for i in indices:
        values: Dict[str, float] = {}
        for name, attr in _SAMPLE_SENSOR_CHANNELS:
            channel = getattr(series, attr)
            if i < len(channel) and channel[i] > 0:
                values[name] = float(channel[i])
        for name, attr in _SAMPLE_PLAIN_CHANNELS:
            channel = getattr(series, attr)
            if i < len(channel):
                values[name] = float(channel[i])
        samples.append(SamplePoint(index=i, time=_time_at(series, i), values=values))
    return samples


# ─── Entry Point ───────────────────────────────────────────────────────────────

def extract_features(
    series: Optional[TimeSeries],
    laps: Optional[List[Lap]] = None,
) -> DerivedFeatures:
    """
    Compute DerivedFeatures for one activity.

    Args:
        series: The activity's telemetry. Must not be None.
        laps: Optional recorded laps; lap analysis runs only when non-empty.

    Raises:
        ProcessingError(data_corrupted): series is None.
    """
    if series is None:
        raise ProcessingError(ErrorKind.DATA_CORRUPTED, "no time series supplied")

    statistics = compute_statistics(series)
    features = DerivedFeatures(
        summary=compute_summary(series, statistics),
        statistics=statistics,
        inflection_points=find_inflection_points(series),
        trends=find_trends(series),
        spikes=find_spikes(series),
        sample_data=sample_points(series),
        lap_analysis=analyze_laps(series, laps) if laps else None,
    )
    logger.debug(
        "Extracted features: %d points, %d inflections, %d trends, %d spikes",
        features.summary.total_data_points,
        len(features.inflection_points),
        len(features.trends),
        len(features.spikes),
    )
    return features


def extract_lap_features(series: Optional[TimeSeries], laps: Optional[List[Lap]]) -> LapAnalysis:
    """
    Lap analysis on its own.

    Raises:
        ProcessingError(data_corrupted): series is None.
        ProcessingError(invalid_request): laps is None or empty.
    """
    if series is None:
        raise ProcessingError(ErrorKind.DATA_CORRUPTED, "no time series supplied")
    return analyze_laps(series, laps)
