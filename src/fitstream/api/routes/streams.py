"""Stream processing routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from fitstream.config import get_settings
from fitstream.db.engine import get_engine
from fitstream.processing.errors import ErrorKind, ProcessingError
from fitstream.processing.factory import build_coordinator
from fitstream.processing.models import ProcessingRequest
from fitstream.processing.modes import get_supported_modes
from fitstream.processing.pagination import PaginationCoordinator
from fitstream.render.pages import format_paginated_result

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_KIND = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.DATA_CORRUPTED: 422,
    ErrorKind.PROCESSING_FAILURE: 502,
    ErrorKind.PROCESSOR_UNAVAILABLE: 503,
    ErrorKind.AI_SUMMARY_FAILURE: 502,
}


class StreamRequest(BaseModel):
    mode: str = "auto"
    channels: List[str] = Field(default_factory=lambda: ["time", "heartrate", "watts", "velocity_smooth"])
    resolution: str = "high"
    page_number: int = 1
    page_size: Optional[int] = None
    summary_prompt: str = ""
    correlation_id: Optional[str] = None


class StreamPageResponse(BaseModel):
    activity_id: int
    page_number: int
    total_pages: int
    processing_mode: str
    has_next_page: bool
    estimated_tokens: int
    start_time: float
    end_time: float
    correlation_id: Optional[str] = None
    content: str


def get_coordinator() -> PaginationCoordinator:
    """FastAPI dependency that builds the coordinator over the app database."""
    return build_coordinator(get_settings(), get_engine())


def _status_for(exc: ProcessingError) -> int:
    if isinstance(exc.__cause__, LookupError):
        return 404
    return _STATUS_BY_KIND.get(exc.kind, 500)


@router.get("/modes", response_model=List[str])
def list_modes():
    """Processing modes a request may ask for."""
    return get_supported_modes()


@router.post("/{activity_id}/streams", response_model=StreamPageResponse)
async def process_streams(
    activity_id: int,
    body: StreamRequest,
    coordinator: PaginationCoordinator = Depends(get_coordinator),
):
    """Deliver one processed page of an activity's telemetry."""
    request = ProcessingRequest(activity_id=activity_id, **body.model_dump())
    try:
        page = await coordinator.process_paginated_request(get_settings().user_id, request)
    except ProcessingError as exc:
        logger.info("Stream request for activity %s rejected: %s", activity_id, exc)
        raise HTTPException(status_code=_status_for(exc), detail=exc.to_dict())

    return StreamPageResponse(
        activity_id=page.activity_id,
        page_number=page.page_number,
        total_pages=page.total_pages,
        processing_mode=page.processing_mode,
        has_next_page=page.has_next_page,
        estimated_tokens=page.estimated_tokens,
        start_time=page.time_range.start_time,
        end_time=page.time_range.end_time,
        correlation_id=page.correlation_id,
        content=format_paginated_result(page),
    )
