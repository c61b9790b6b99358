"""Request and result types shared by the dispatcher and the paginator."""
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from fitstream.analysis.timeseries import Lap
from fitstream.processing.errors import ProcessingError

# page_size sentinel: deliver the whole series in one page, budget permitting
FULL_DATASET = -1


class ProcessingRequest(BaseModel):
    """
    A caller's request for one activity's telemetry.

    Field-level checks are left to PaginationCoordinator so that every
    violation surfaces as a ProcessingError(invalid_request).
    """
    activity_id: int
    mode: str = "auto"
    channels: List[str] = Field(default_factory=lambda: ["time", "heartrate", "watts", "velocity_smooth"])
    resolution: str = "high"
    page_number: int = 1
    page_size: Optional[int] = None  # None → configured default; FULL_DATASET → whole series
    summary_prompt: str = ""
    correlation_id: Optional[str] = None


@dataclass
class ProcessingParams:
    """What a dispatch handler needs beyond the mode and the series."""
    activity_id: int = 0
    correlation_id: Optional[str] = None
    window_start: int = 0           # index of the series' first sample within the activity
    summary_prompt: str = ""
    laps: Optional[List[Lap]] = None


@dataclass
class ModeOption:
    mode: str
    description: str
    command: str
    recommended: bool = False


@dataclass
class ProcessedResult:
    content: str
    mode: str
    options: List[ModeOption] = field(default_factory=list)
    payload: Any = None
    correlation_id: Optional[str] = None
    error: Optional[ProcessingError] = None   # set only on emergency fallback


@dataclass
class Narrative:
    """Free-text summary produced by a SummaryGenerator."""
    activity_id: int
    prompt: str
    summary: str
    tokens_used: int = 0
    model: str = ""


@dataclass
class TimeRange:
    start_time: float
    end_time: float


@dataclass
class Page:
    activity_id: int
    page_number: int
    total_pages: int
    processing_mode: str
    data: str
    time_range: TimeRange
    instructions: str
    has_next_page: bool
    estimated_tokens: int
    correlation_id: Optional[str] = None
