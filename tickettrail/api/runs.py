"""
POST /runs
Accepts one run's batch of file results and reconciles it against the
tracker. Always answers 200 once the payload validates: ticket tracking
problems are reported in the body, never as a failed request.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from tickettrail.api.dependencies import get_session
from tickettrail.core.config import RunOptions
from tickettrail.models.test_result import FileResult
from tickettrail.services.tracking_session import TrackingSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Runs"])


class RunRequest(BaseModel):
    results: List[FileResult] = Field(default_factory=list)
    options: Optional[RunOptions] = None


class RunResponse(BaseModel):
    processed: bool
    tracking_available: bool
    files: int
    tests: int
    error: Optional[str] = None


@router.post("/runs", response_model=RunResponse)
async def submit_run(request: RunRequest, session: TrackingSession = Depends(get_session)):
    test_count = sum(len(r.test_results) for r in request.results)
    logger.info("Received run: %d file(s), %d test(s)", len(request.results), test_count)

    processed = await session.process(request.results, request.options)
    return RunResponse(
        processed=processed,
        tracking_available=session.available,
        files=len(request.results),
        tests=test_count,
        error=session.last_error,
    )
