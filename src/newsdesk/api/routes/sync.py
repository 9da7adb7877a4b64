"""Sync trigger and status routes."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import Session

from newsdesk.db.engine import get_engine, get_session
from newsdesk.sync.metadata import SyncStatus, get_sync_status
from newsdesk.sync.service import SyncReport, run_sync

router = APIRouter()


class SyncTriggerRequest(BaseModel):
    full: bool = False  # False runs incremental (falls back to full if never synced)


async def _do_sync(full: bool) -> SyncReport:
    return await run_sync(get_engine(), full=full)


@router.post("/run", response_model=SyncReport)
async def trigger_sync(request: SyncTriggerRequest):
    """
    Run a sync now and return its report.

    Responds 500 with the failure report if the sync failed; the watermark
    is unchanged in that case.
    """
    report = await _do_sync(request.full)
    if not report.success:
        return JSONResponse(status_code=500, content=report.model_dump())
    return report


@router.get("/status", response_model=SyncStatus)
def sync_status(session: Session = Depends(get_session)):
    """Return the current watermark (or never_synced) and the last attempt."""
    return get_sync_status(session.get_bind())
