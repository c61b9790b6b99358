"""
Text for the dispatcher's non-data outcomes: the auto-mode option prompt,
fallback notices, the emergency diagnostic, and narrative summaries.
"""
from typing import List, Optional

from fitstream.analysis.timeseries import TimeSeries
from fitstream.processing.models import ModeOption, Narrative

OPTION_PAGE_SIZES = (500, 1000, 2000)

REMEDIATION_HINTS = (
    "Check the activity data source connection",
    "Verify the activity ID is correct",
    "Try a different processing mode",
    "Contact support if the issue persists",
)


def fallback_notice(mode: str, reason: str) -> str:
    """Prefix marking content produced by a fallback path."""
    return f"**Fallback Mode:** {mode} ({reason})\n\n"


def render_mode_options(
    activity_id: int,
    series: TimeSeries,
    estimated_tokens: int,
    budget: int,
    options: List[ModeOption],
    tokens_per_point: float,
) -> str:
    """Neutral prompt listing the ways to continue with an oversized series."""
    channels = series.available_channels()
    lines = [
        "**Output too large for context window**",
        "",
        f"Activity {activity_id} has {series.point_count()} data points across "
        f"{len(channels)} channels ({', '.join(channels)}).",
        f"Raw output is estimated at ~{estimated_tokens} tokens; the budget is {budget} tokens.",
        "",
        "Choose how to continue:",
    ]
    for i, option in enumerate(options, start=1):
        marker = " (recommended)" if option.recommended else ""
        lines.append(f"{i}. **{option.mode}**{marker}: {option.description}")
        lines.append(f"   `{option.command}`")

    lines.append("")
    lines.append("Estimated tokens per raw page:")
    for size in OPTION_PAGE_SIZES:
        lines.append(f"- page_size={size}: ~{int(size * tokens_per_point)} tokens")
    return "\n".join(lines)


def render_emergency(
    activity_id: int,
    requested_mode: str,
    error: Exception,
    series: Optional[TimeSeries],
) -> str:
    """
    Diagnostic shown when every processing path failed. Formats only facts
    already known, so it cannot fail itself.
    """
    lines = [
        "**Emergency Fallback**",
        "",
        "Processing failed for this request.",
        f"- Activity: {activity_id}",
        f"- Requested mode: {requested_mode}",
        f"- Error: {error}",
    ]
    if series is not None:
        channels = series.available_channels()
        lines.append("")
        lines.append("**Basic info:**")
        lines.append(f"- Data points: {series.point_count()}")
        lines.append(f"- Channels: {', '.join(channels) if channels else 'none'}")

    lines.append("")
    lines.append("**Suggestions:**")
    for hint in REMEDIATION_HINTS:
        lines.append(f"- {hint}")
    return "\n".join(lines)


def render_narrative(narrative: Narrative) -> str:
    lines = [f"## AI Summary for Activity {narrative.activity_id}", ""]
    if narrative.prompt:
        lines.append(f"**Request:** {narrative.prompt}")
        lines.append("")
    lines.append(narrative.summary.strip())
    if narrative.model or narrative.tokens_used:
        lines.append("")
        lines.append(f"_{narrative.model or 'unknown model'}, {narrative.tokens_used} tokens_")
    return "\n".join(lines)
