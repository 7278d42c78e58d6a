"""
GET /bugs
Diagnostic snapshot of every ticket the tracker knows about.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from tickettrail.api.dependencies import get_session
from tickettrail.services.export_writer import ExportWriter
from tickettrail.services.tracking_session import TrackingSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bugs"])


@router.get("/bugs")
async def list_bugs(session: TrackingSession = Depends(get_session)):
    if not await session.start():
        raise HTTPException(status_code=503, detail=f"Bug tracker unavailable: {session.last_error}")
    return await ExportWriter.build_snapshot(session.engine.tracker)
