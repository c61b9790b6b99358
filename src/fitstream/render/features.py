"""
DerivedFeatures → markdown, the `derived` mode output.

Sections appear only when they have content, so a heart-rate-only activity
doesn't carry empty power and lap blocks.
"""
from typing import List, Optional

from fitstream.analysis.features import DerivedFeatures
from fitstream.analysis.laps import LapAnalysis
from fitstream.render.streams import format_duration

_METRIC_LABELS = {
    "heart_rate": ("Heart Rate", "bpm"),
    "power": ("Power", "W"),
    "speed": ("Speed", "m/s"),
    "cadence": ("Cadence", "rpm"),
    "altitude": ("Altitude", "m"),
    "distance": ("Distance", "m"),
    "temperature": ("Temperature", "°C"),
    "grade": ("Grade", "%"),
}


def _summary_lines(features: DerivedFeatures) -> List[str]:
    s = features.summary
    lines = ["### Summary"]
    lines.append(f"- Data points: {s.total_data_points}")
    lines.append(f"- Duration: {format_duration(s.duration)}")
    if s.total_distance:
        lines.append(f"- Distance: {s.total_distance / 1000:.2f} km")
    if s.elevation_gain or s.elevation_loss:
        lines.append(f"- Elevation: +{s.elevation_gain:.0f} m / -{s.elevation_loss:.0f} m")
    if s.avg_speed:
        lines.append(f"- Speed: avg {s.avg_speed:.2f} m/s, max {s.max_speed:.2f} m/s")
    if s.avg_heart_rate:
        lines.append(f"- Heart rate: avg {s.avg_heart_rate:.0f} bpm, max {s.max_heart_rate:.0f} bpm")
        lines.append(f"- Heart-rate drift: {s.heart_rate_drift:+.1f} bpm/h")
    if s.avg_power:
        lines.append(
            f"- Power: avg {s.avg_power:.0f} W, max {s.max_power:.0f} W, "
            f"normalized {s.normalized_power:.0f} W"
        )
    if s.avg_cadence:
        lines.append(f"- Cadence: avg {s.avg_cadence:.0f}, max {s.max_cadence:.0f}")
    if s.avg_temperature is not None:
        lines.append(f"- Temperature: avg {s.avg_temperature:.1f} °C")
    if s.moving_time_percent is not None:
        lines.append(f"- Moving: {s.moving_time_percent:.0f}% of samples")
    lines.append(f"- Channels: {', '.join(s.channels) if s.channels else 'none'}")
    return lines


def _statistics_lines(features: DerivedFeatures, redact_location: bool) -> List[str]:
    metrics = features.statistics.metrics()
    location = features.statistics.location
    if not metrics and location is None:
        return []

    lines = ["### Channel Statistics", "| Channel | Min | Q25 | Median | Mean | Q75 | Max | Std | CV |",
             "|---|---|---|---|---|---|---|---|---|"]
    for name, st in metrics:
        label, unit = _METRIC_LABELS[name]
        lines.append(
            f"| {label} ({unit}) | {st.min:.1f} | {st.q25:.1f} | {st.median:.1f} | {st.mean:.1f} "
            f"| {st.q75:.1f} | {st.max:.1f} | {st.std_dev:.1f} | {st.variability:.2f} |"
        )
    if location is not None:
        if redact_location:
            lines.append(f"\nGPS: {location.point_count} points (coordinates redacted)")
        else:
            lines.append(
                f"\nGPS: {location.point_count} points, start {location.start[0]:.5f},{location.start[1]:.5f}, "
                f"end {location.end[0]:.5f},{location.end[1]:.5f}"
            )
    return lines


def _event_lines(features: DerivedFeatures) -> List[str]:
    lines: List[str] = []
    if features.inflection_points:
        lines.append("### Inflection Points")
        for p in features.inflection_points:
            lines.append(
                f"- {format_duration(p.time)} {p.channel} {p.direction} at {p.value:.1f} "
                f"(swing {p.magnitude:.1f})"
            )
        lines.append("")
    if features.trends:
        lines.append("### Trends")
        for t in features.trends:
            lines.append(
                f"- {format_duration(t.start_time)}-{format_duration(t.end_time)} {t.channel} "
                f"{t.direction} {t.change:+.1f} ({t.rate_per_minute:+.1f}/min)"
            )
        lines.append("")
    if features.spikes:
        lines.append("### Spikes")
        for sp in features.spikes:
            lines.append(
                f"- {format_duration(sp.time)} {sp.channel} {sp.value:.1f} ({sp.deviation:+.1f}σ)"
            )
        lines.append("")
    return lines


def _sample_lines(features: DerivedFeatures) -> List[str]:
    if not features.sample_data:
        return []
    lines = ["### Sample Points"]
    for sample in features.sample_data:
        values = ", ".join(f"{k} {v:.1f}" for k, v in sample.values.items())
        lines.append(f"- {format_duration(sample.time)}: {values or 'no readings'}")
    return lines


def _lap_lines(analysis: LapAnalysis) -> List[str]:
    lines = [f"### Laps ({analysis.total_laps})",
             "| # | Name | Time | Distance | Speed | HR | Power |",
             "|---|---|---|---|---|---|---|"]
    for lap in analysis.laps:
        lines.append(
            f"| {lap.lap_number} | {lap.name} | {format_duration(lap.duration)} "
            f"| {lap.distance / 1000:.2f} km | {lap.avg_speed:.2f} m/s "
            f"| {lap.avg_heart_rate:.0f} | {lap.avg_power:.0f} |"
        )
    c = analysis.comparisons
    lines.append("")
    if c.fastest_lap:
        lines.append(
            f"- Fastest lap: {c.fastest_lap}, slowest lap: {c.slowest_lap} "
            f"(speed spread {c.speed_variation * 100:.1f}%)"
        )
    if c.highest_power_lap:
        lines.append(f"- Highest power lap: {c.highest_power_lap}, lowest: {c.lowest_power_lap}")
    if c.highest_hr_lap:
        lines.append(f"- Highest HR lap: {c.highest_hr_lap}, lowest: {c.lowest_hr_lap}")
    lines.append(f"- Consistency score: {c.consistency_score:.2f}")
    return lines


def render_features(
    features: DerivedFeatures,
    activity_id: Optional[int] = None,
    redact_location: bool = True,
) -> str:
    heading = "## Derived Features"
    if activity_id:
        heading += f" for Activity {activity_id}"

    sections = [
        [heading],
        _summary_lines(features),
        _statistics_lines(features, redact_location),
        _event_lines(features),
        _sample_lines(features),
    ]
    if features.lap_analysis is not None:
        sections.append(_lap_lines(features.lap_analysis))

    return "\n\n".join("\n".join(lines).rstrip() for lines in sections if lines)
