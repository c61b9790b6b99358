"""
Raw telemetry rendering.

render_streams() emits a short per-channel header followed by a
tab-separated table, one row per sample. It is the `raw` mode output and the
body of raw pages. GPS coordinates are replaced by a point count when
redaction is enabled.

render_stream_overview() is the header: per-channel counts and value ranges.
render_stream_counts() is what the raw handler falls back to when the table
renderer fails. It only counts samples.
"""
from typing import List, Optional

from fitstream.analysis.timeseries import TimeSeries

_UNITS = {
    "time": "s",
    "distance": "m",
    "altitude": "m",
    "velocity_smooth": "m/s",
    "heartrate": "bpm",
    "cadence": "rpm",
    "watts": "W",
    "temp": "°C",
    "grade_smooth": "%",
}


def format_duration(seconds: float) -> str:
    """Format seconds as H:MM:SS, or M:SS under an hour."""
    total = int(round(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return f"{value:.2f}".rstrip("0").rstrip(".")
    if isinstance(value, (tuple, list)):
        return ",".join(f"{v:.5f}" for v in value)
    return str(value)


def _channel_line(key: str, values: list) -> str:
    if key == "moving":
        moving = sum(1 for v in values if v)
        return f"- moving: {len(values)} points ({moving} moving)"
    if key == "latlng":
        return f"- latlng: {len(values)} points"
    unit = _UNITS.get(key, "")
    return (
        f"- {key}: {len(values)} points, "
        f"range {_format_value(min(values))} to {_format_value(max(values))} {unit}".rstrip()
    )


def render_stream_overview(series: TimeSeries, title: Optional[str] = None) -> str:
    """Per-channel counts and ranges, no per-sample data."""
    lines = [title or "## Stream Data", ""]
    lines.append(f"Data points: {series.point_count()}")
    channels = series.available_channels()
    lines.append(f"Channels: {', '.join(channels) if channels else 'none'}")
    for key in channels:
        lines.append(_channel_line(key, series.channel(key)))
    return "\n".join(lines)


def render_stream_counts(series: TimeSeries, title: Optional[str] = None) -> str:
    """Point and per-channel sample counts; never looks at the values."""
    channels = series.available_channels()
    lines = [title or "## Stream Data", ""]
    lines.append(f"Data points: {series.point_count()}")
    lines.append(f"Channels: {', '.join(channels) if channels else 'none'}")
    for key in channels:
        lines.append(f"- {key}: {len(series.channel(key))} points")
    return "\n".join(lines)


def render_streams(
    series: TimeSeries,
    title: Optional[str] = None,
    redact_location: bool = True,
    start_index: int = 0,
) -> str:
    """
    Header plus a tab-separated sample table.

    Args:
        series: Series (or window of a series) to render.
        title: Markdown heading; defaults to "## Stream Data".
        redact_location: Drop the latlng column and show a count instead.
        start_index: Index of the first row within the full activity, used
                     for the row numbers of paginated windows.
    """
    lines = [render_stream_overview(series, title)]
    if redact_location and series.latlng:
        lines.append("  (GPS coordinates redacted)")

    columns: List[str] = [
        key for key in series.available_channels()
        if not (key == "latlng" and redact_location)
    ]
    if not columns:
        return "\n".join(lines)

    lines.append("")
    lines.append("```")
    lines.append("\t".join(["index"] + columns))
    for i in range(series.point_count()):
        row = [str(start_index + i)]
        for key in columns:
            values = series.channel(key)
            row.append(_format_value(values[i]) if i < len(values) else "")
        lines.append("\t".join(row))
    lines.append("```")
    return "\n".join(lines)
