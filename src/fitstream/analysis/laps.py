"""
Lap analysis: per-lap summaries and cross-lap comparisons.

Each lap is summarised from two sources. The device's own lap averages win
when present; the stream window [start_index, end_index] fills whatever the
device left out (and always supplies cadence and elevation).

The comparison block answers "how even was this session?":
  - fastest / slowest lap by average speed, and the relative spread
    (fastest - slowest) / fastest
  - highest / lowest lap by average power and by average heart rate
  - consistency score = max(0, 1 - (CV_speed + CV_power + CV_hr)),
    so a perfectly even session scores 1.0

When an activity has no recorded laps, distance_segments() cuts the series
into fixed-distance pseudo-laps (1 km by default) so the same analysis applies.
"""
from dataclasses import dataclass, field
from statistics import mean
from typing import List, Optional, Sequence

from fitstream.analysis.stats import coefficient_of_variation, elevation_change
from fitstream.analysis.timeseries import Lap, TimeSeries
from fitstream.processing.errors import ErrorKind, ProcessingError

DEFAULT_SEGMENT_METERS = 1000.0


@dataclass
class LapSummary:
    lap_number: int                     # 1-based
    name: str
    start_index: int
    end_index: int
    duration: float                     # seconds
    distance: float                     # meters
    avg_speed: float = 0.0              # m/s
    max_speed: float = 0.0
    avg_heart_rate: float = 0.0         # bpm
    max_heart_rate: float = 0.0
    avg_power: float = 0.0              # watts
    max_power: float = 0.0
    avg_cadence: float = 0.0
    elevation_gain: float = 0.0
    elevation_loss: float = 0.0


@dataclass
class LapComparisons:
    """Cross-lap comparison. Lap references are 1-based; 0 means not available."""
    fastest_lap: int = 0
    slowest_lap: int = 0
    speed_variation: float = 0.0        # (fastest - slowest) / fastest
    highest_power_lap: int = 0
    lowest_power_lap: int = 0
    highest_hr_lap: int = 0
    lowest_hr_lap: int = 0
    speed_cv: float = 0.0
    power_cv: float = 0.0
    heart_rate_cv: float = 0.0
    consistency_score: float = 1.0


@dataclass
class LapAnalysis:
    total_laps: int
    laps: List[LapSummary] = field(default_factory=list)
    comparisons: LapComparisons = field(default_factory=LapComparisons)


# ─── Per-lap Summary ───────────────────────────────────────────────────────────

def _window(values: Sequence, start: int, end: int) -> list:
    # inclusive end, clamped to the channel
    if start < 0:
        start = 0
    return list(values[start:end + 1])


def _positive_mean(values: Sequence[float]) -> float:
    data = [v for v in values if v and v > 0]
    return mean(data) if data else 0.0


def _positive_max(values: Sequence[float]) -> float:
    data = [v for v in values if v and v > 0]
    return float(max(data)) if data else 0.0


def _prefer(reported: Optional[float], derived: float) -> float:
    if reported is not None and reported > 0:
        return float(reported)
    return derived


def summarize_lap(series: TimeSeries, lap: Lap, lap_number: int) -> LapSummary:
    """Summarise one lap from its device-reported values and its stream window."""
    start, end = lap.start_index, lap.end_index

    times = _window(series.time, start, end)
    dists = _window(series.distance, start, end)
    speeds = _window(series.velocity, start, end)
    hrs = _window(series.heart_rate, start, end)
    watts = _window(series.power, start, end)

    duration = lap.elapsed_time
    if duration <= 0 and len(times) >= 2:
        duration = float(times[-1] - times[0])

    distance = lap.distance
    if distance <= 0 and len(dists) >= 2:
        distance = float(dists[-1] - dists[0])

    derived_speed = _positive_mean(speeds)
    if derived_speed == 0.0 and duration > 0:
        derived_speed = distance / duration

    gain, loss = elevation_change(_window(series.altitude, start, end))

    return LapSummary(
        lap_number=lap_number,
        name=lap.name,
        start_index=start,
        end_index=end,
        duration=duration,
        distance=distance,
        avg_speed=_prefer(lap.average_speed, derived_speed),
        max_speed=_prefer(lap.max_speed, _positive_max(speeds)),
        avg_heart_rate=_prefer(lap.average_heartrate, _positive_mean(hrs)),
        max_heart_rate=_prefer(lap.max_heartrate, _positive_max(hrs)),
        avg_power=_prefer(lap.average_watts, _positive_mean(watts)),
        max_power=_prefer(lap.max_watts, _positive_max(watts)),
        avg_cadence=_positive_mean(_window(series.cadence, start, end)),
        elevation_gain=gain,
        elevation_loss=loss,
    )


# ─── Comparisons ───────────────────────────────────────────────────────────────

def _extreme_laps(laps: List[LapSummary], attr: str):
    """(highest, lowest) lap numbers by attr, ignoring laps without the metric."""
    candidates = [lap for lap in laps if getattr(lap, attr) > 0]
    if not candidates:
        return 0, 0
    highest = max(candidates, key=lambda lap: getattr(lap, attr))
    lowest = min(candidates, key=lambda lap: getattr(lap, attr))
    return highest.lap_number, lowest.lap_number


def compare_laps(laps: List[LapSummary]) -> LapComparisons:
    comparisons = LapComparisons()
    if not laps:
        return comparisons

    comparisons.fastest_lap, comparisons.slowest_lap = _extreme_laps(laps, "avg_speed")
    if comparisons.fastest_lap:
        fastest = laps[comparisons.fastest_lap - 1].avg_speed
        slowest = laps[comparisons.slowest_lap - 1].avg_speed
        comparisons.speed_variation = (fastest - slowest) / fastest

    comparisons.highest_power_lap, comparisons.lowest_power_lap = _extreme_laps(laps, "avg_power")
    comparisons.highest_hr_lap, comparisons.lowest_hr_lap = _extreme_laps(laps, "avg_heart_rate")

    comparisons.speed_cv = coefficient_of_variation([lap.avg_speed for lap in laps])
    comparisons.power_cv = coefficient_of_variation([lap.avg_power for lap in laps])
    comparisons.heart_rate_cv = coefficient_of_variation([lap.avg_heart_rate for lap in laps])

    total_variation = comparisons.speed_cv + comparisons.power_cv + comparisons.heart_rate_cv
    comparisons.consistency_score = max(0.0, 1.0 - total_variation)
    return comparisons


def analyze_laps(series: TimeSeries, laps: List[Lap]) -> LapAnalysis:
    """
    Summarise and compare laps.

    Raises:
        ProcessingError(invalid_request): laps is None or empty.
    """
    if not laps:
        raise ProcessingError(ErrorKind.INVALID_REQUEST, "no laps supplied for lap analysis")

    summaries = [summarize_lap(series, lap, i + 1) for i, lap in enumerate(laps)]
    return LapAnalysis(
        total_laps=len(summaries),
        laps=summaries,
        comparisons=compare_laps(summaries),
    )


# ─── Distance Segments ─────────────────────────────────────────────────────────

def distance_segments(
    series: TimeSeries,
    segment_meters: float = DEFAULT_SEGMENT_METERS,
) -> List[Lap]:
    """
    Cut an activity into fixed-distance pseudo-laps using the cumulative
    distance channel. The trailing partial segment is kept if it has at least
    two samples. Returns [] when there is no distance channel.
    """
    dist = series.distance
    if len(dist) < 2 or segment_meters <= 0:
        return []

    laps: List[Lap] = []
    start = 0
    boundary = dist[0] + segment_meters
    for i, d in enumerate(dist):
        if d >= boundary:
            laps.append(_segment_lap(series, len(laps) + 1, start, i))
            start = i
            while d >= boundary:
                boundary += segment_meters
    if len(dist) - 1 > start:
        laps.append(_segment_lap(series, len(laps) + 1, start, len(dist) - 1))
    return laps


def _segment_lap(series: TimeSeries, number: int, start: int, end: int) -> Lap:
    elapsed = 0.0
    if end < len(series.time):
        elapsed = float(series.time[end] - series.time[start])
    return Lap(
        name=f"Segment {number}",
        start_index=start,
        end_index=end,
        elapsed_time=elapsed,
        distance=float(series.distance[end] - series.distance[start]),
    )
