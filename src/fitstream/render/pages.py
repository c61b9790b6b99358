"""Navigation text for paginated stream delivery."""
from typing import List, Optional

from fitstream.processing.models import FULL_DATASET, Page
from fitstream.render.streams import format_duration


def build_page_instructions(
    activity_id: int,
    page_number: int,
    total_pages: int,
    page_size: int,
    mode: str,
    suggested_page_size: Optional[int] = None,
) -> str:
    """
    Header telling the reader where this page sits and how to fetch the rest.
    page_size == FULL_DATASET marks a whole-series page.
    """
    lines: List[str] = [f"**Page {page_number} of {total_pages}** for Activity {activity_id} ({mode} mode)"]

    if page_size == FULL_DATASET:
        lines.append("Complete dataset delivered in a single page.")
        return "\n".join(lines)

    if page_number < total_pages:
        lines.append(f"- Next: page_number={page_number + 1} page_size={page_size}")
    if page_number > 1:
        lines.append(f"- Previous: page_number={page_number - 1} page_size={page_size}")
    if total_pages > 2:
        lines.append(f"- Jump: page_number=1..{total_pages} page_size={page_size}")
    lines.append("- Full dataset: page_size=-1 (only if it fits the context budget)")

    if page_number >= total_pages:
        lines.append("This is the last page; the dataset is complete.")
    elif suggested_page_size and suggested_page_size != page_size:
        lines.append(f"Tip: page_size={suggested_page_size} fits the remaining context comfortably.")
    else:
        lines.append("Tip: mode=derived gives a compact overview of the whole activity.")
    return "\n".join(lines)


def format_paginated_result(page: Page) -> str:
    """
    Caller-facing text for one page: instructions, time range, data, and a
    stats footer. Deterministic for a given Page.
    """
    stats = f"**Page Stats:** {page.estimated_tokens} estimated tokens"
    if page.has_next_page:
        stats += f" | Next: page {page.page_number + 1}"

    return "\n\n".join([
        page.instructions,
        f"**Time range:** {format_duration(page.time_range.start_time)} to "
        f"{format_duration(page.time_range.end_time)}",
        page.data,
        stats,
    ])
