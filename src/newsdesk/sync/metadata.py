"""
Sync metadata store: the singleton watermark row and the status report.

The watermark is loaded and saved as a value (SyncMetadata). Nothing keeps
it in module state; the sync service reads it at the start of a run and
writes a new one only after reconciliation succeeds.
"""
import time
from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from newsdesk.models.sync import METADATA_ROW_ID, SyncMetadata, SyncRun


def now_ms() -> int:
    return int(time.time() * 1000)


def load_metadata(engine) -> Optional[SyncMetadata]:
    """Return the watermark row, or None if no sync has ever completed."""
    with Session(engine) as s:
        return s.get(SyncMetadata, METADATA_ROW_ID)


def save_metadata(
    engine,
    *,
    last_sync_timestamp: str,
    total_articles_synced: int,
    sync_type: str,
    completed_at: Optional[int] = None,
) -> SyncMetadata:
    """
    Create or overwrite the watermark row in a single commit.

    Args:
        engine: SQLAlchemy engine.
        last_sync_timestamp: ISO datetime the run started at; the next
            incremental run queries pages edited on or after it.
        total_articles_synced: Articles reconciled by this run.
        sync_type: "full" or "incremental".
        completed_at: Epoch ms; defaults to now.
    """
    with Session(engine) as s:
        row = s.get(SyncMetadata, METADATA_ROW_ID) or SyncMetadata(
            id=METADATA_ROW_ID, last_sync_timestamp="", last_sync_completed_at=0
        )
        row.last_sync_timestamp = last_sync_timestamp
        row.last_sync_completed_at = completed_at if completed_at is not None else now_ms()
        row.total_articles_synced = total_articles_synced
        row.sync_type = sync_type
        s.add(row)
        s.commit()
        s.refresh(row)
        return row


class LastRun(BaseModel):
    status: str
    sync_type: Optional[str]
    started_at: datetime
    finished_at: Optional[datetime]
    articles_fetched: int
    error_message: Optional[str]


class SyncStatus(BaseModel):
    status: str  # "synced" or "never_synced"
    last_sync_timestamp: Optional[str] = None
    last_sync_completed_at: Optional[int] = None
    total_articles_synced: Optional[int] = None
    sync_type: Optional[str] = None
    last_run: Optional[LastRun] = None


def get_sync_status(engine) -> SyncStatus:
    """Current watermark plus the most recent attempt (which may have failed)."""
    with Session(engine) as s:
        meta = s.get(SyncMetadata, METADATA_ROW_ID)
        run = s.exec(select(SyncRun).order_by(SyncRun.id.desc())).first()

    last_run = None
    if run is not None:
        last_run = LastRun(
            status=run.status,
            sync_type=run.sync_type,
            started_at=run.started_at,
            finished_at=run.finished_at,
            articles_fetched=run.articles_fetched,
            error_message=run.error_message,
        )

    if meta is None:
        return SyncStatus(status="never_synced", last_run=last_run)
    return SyncStatus(
        status="synced",
        last_sync_timestamp=meta.last_sync_timestamp,
        last_sync_completed_at=meta.last_sync_completed_at,
        total_articles_synced=meta.total_articles_synced,
        sync_type=meta.sync_type,
        last_run=last_run,
    )
