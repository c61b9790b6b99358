"""
Stream summary prompt builder.

Claude receives the activity's telemetry as a tab-separated table plus the
caller's question, and answers in prose. Long activities are thinned to
MAX_PROMPT_POINTS evenly spaced samples so the prompt stays inside the
model's context; the header says so, so the model doesn't mistake the
sampling interval for the recording interval.
"""
from typing import Tuple

from fitstream.analysis.timeseries import TimeSeries, downsample
from fitstream.render.streams import render_streams

MAX_PROMPT_POINTS = 2000

SYSTEM_PROMPT = (
    "You are an expert sports data analyst and endurance coach. You are given "
    "raw telemetry from a single training activity. Answer the athlete's "
    "request using only the data provided. Cite concrete times and values, "
    "flag sensor dropouts or implausible readings, and keep the answer under "
    "400 words unless the request asks for more detail."
)


def build_summary_prompt(
    series: TimeSeries,
    activity_id: int,
    request: str,
    redact_location: bool = True,
) -> Tuple[str, str]:
    """
    Build the (system, user) prompt pair for a stream summary.

    Args:
        series: Activity telemetry to summarise.
        activity_id: Included so the answer can reference the activity.
        request: The caller's question or instruction.
        redact_location: Drop GPS coordinates from the table.

    Returns:
        (system_prompt, user_prompt)
    """
    total = series.point_count()
    sampled = downsample(series, MAX_PROMPT_POINTS)

    lines = [f"# Activity {activity_id} telemetry", ""]
    if sampled.point_count() < total:
        lines.append(
            f"The activity has {total} samples; {sampled.point_count()} evenly spaced "
            f"samples are shown below."
        )
        lines.append("")
    lines.append(render_streams(sampled, title="## Streams", redact_location=redact_location))
    lines.append("")
    lines.append("# Request")
    lines.append(request.strip())
    return SYSTEM_PROMPT, "\n".join(lines)
