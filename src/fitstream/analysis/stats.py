"""
Statistical primitives over single channels.

Everything here is a free function over a plain sequence and returns a
dataclass or a float. Nothing reads a TimeSeries directly, so the same
helpers serve whole activities, lap windows and paginated slices.

Zero samples in numeric channels are treated as sensor dropouts (a strap
losing contact, a power meter between pedal strokes) and are excluded from
MetricStats unless the whole channel is zero.
"""
import math
from dataclasses import dataclass
from statistics import mean, median, pstdev
from typing import List, Optional, Sequence, Tuple

import numpy as np

NORMALIZED_POWER_WINDOW = 30  # samples (1 Hz recording → 30 seconds)


# ─── Metric Statistics ─────────────────────────────────────────────────────────

@dataclass
class MetricStats:
    """Distribution summary of one numeric channel."""
    count: int
    min: float
    max: float
    mean: float
    median: float
    std_dev: float
    variability: float   # coefficient of variation (std_dev / mean)
    range: float
    q25: float
    q75: float


def percentile(sorted_values: Sequence[float], pct: float) -> float:
    """
    Linear-interpolated percentile of an already sorted sequence.
    pct is in [0, 100]. Returns 0.0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])

    rank = pct / 100.0 * (len(sorted_values) - 1)
    lower = int(math.floor(rank))
    upper = int(math.ceil(rank))
    if lower == upper:
        return float(sorted_values[lower])
    weight = rank - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def metric_stats(values: Sequence[float]) -> Optional[MetricStats]:
    """
    Summarise a numeric channel. Returns None for an empty channel.

    Zeros are dropped first; if nothing is left the original values are used
    so an all-zero channel still reports count and range.
    """
    if not values:
        return None

    nonzero = [float(v) for v in values if v != 0]
    data = nonzero or [float(v) for v in values]
    ordered = sorted(data)

    avg = mean(ordered)
    std = pstdev(ordered) if len(ordered) > 1 else 0.0
    return MetricStats(
        count=len(ordered),
        min=ordered[0],
        max=ordered[-1],
        mean=avg,
        median=median(ordered),
        std_dev=std,
        variability=std / avg if avg != 0 else 0.0,
        range=ordered[-1] - ordered[0],
        q25=percentile(ordered, 25),
        q75=percentile(ordered, 75),
    )


@dataclass
class BooleanStats:
    count: int
    true_count: int
    false_count: int
    true_percent: float
    false_percent: float


def boolean_stats(values: Sequence[bool]) -> Optional[BooleanStats]:
    if not values:
        return None
    true_count = sum(1 for v in values if v)
    false_count = len(values) - true_count
    return BooleanStats(
        count=len(values),
        true_count=true_count,
        false_count=false_count,
        true_percent=true_count / len(values) * 100.0,
        false_percent=false_count / len(values) * 100.0,
    )


@dataclass
class LocationStats:
    """GPS extent of an activity. (0, 0) fixes are treated as no-signal."""
    point_count: int
    start: Tuple[float, float]
    end: Tuple[float, float]
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def location_stats(points: Sequence[Tuple[float, float]]) -> Optional[LocationStats]:
    valid = [(p[0], p[1]) for p in points if len(p) >= 2 and (p[0], p[1]) != (0, 0)]
    if not valid:
        return None
    lats = [p[0] for p in valid]
    lngs = [p[1] for p in valid]
    return LocationStats(
        point_count=len(valid),
        start=valid[0],
        end=valid[-1],
        min_lat=min(lats),
        max_lat=max(lats),
        min_lng=min(lngs),
        max_lng=max(lngs),
    )


# ─── Elevation ─────────────────────────────────────────────────────────────────

def elevation_change(altitude: Sequence[float]) -> Tuple[float, float]:
    """
    Total ascent and descent in meters from consecutive altitude deltas.
    Descent is returned as a positive number.
    """
    gain = 0.0
    loss = 0.0
    for prev, cur in zip(altitude, altitude[1:]):
        delta = cur - prev
        if delta > 0:
            gain += delta
        else:
            loss -= delta
    return gain, loss


# ─── Normalized Power ──────────────────────────────────────────────────────────

def normalized_power(power: Sequence[float], window: int = NORMALIZED_POWER_WINDOW) -> float:
    """
    Coggan normalized power.

    1. Trailing moving average over `window` samples
    2. Raise each averaged value to the 4th power
    3. Mean of those values
    4. 4th root

    Series shorter than the window fall back to the simple mean.
    """
    if not power:
        return 0.0
    data = np.asarray(power, dtype=float)
    if data.size < window:
        return float(data.mean())

    rolling = np.convolve(data, np.ones(window) / window, mode="valid")
    return float(np.mean(rolling ** 4) ** 0.25)


# ─── Trend Fitting ─────────────────────────────────────────────────────────────

def linear_slope(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Least-squares slope of ys against xs. Returns 0.0 when fewer than two
    points are given or all xs are equal.
    """
    n = min(len(xs), len(ys))
    if n < 2:
        return 0.0
    xs = xs[:n]
    ys = ys[:n]

    x_mean = mean(xs)
    y_mean = mean(ys)
    numerator = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys))
    denominator = sum((x - x_mean) ** 2 for x in xs)
    if denominator == 0:
        return 0.0
    return numerator / denominator


def heart_rate_drift(heart_rate: Sequence[float], time: Sequence[float]) -> float:
    """
    Heart-rate drift in bpm per hour: slope of HR over elapsed seconds × 3600.
    Only the overlapping prefix of the two channels is used.
    """
    n = min(len(heart_rate), len(time))
    if n < 2:
        return 0.0
    return linear_slope(list(time[:n]), list(heart_rate[:n])) * 3600.0


def coefficient_of_variation(values: List[float]) -> float:
    """std_dev / mean over positive values; 0.0 when undefined."""
    data = [v for v in values if v > 0]
    if len(data) < 2:
        return 0.0
    avg = mean(data)
    return pstdev(data) / avg if avg else 0.0
