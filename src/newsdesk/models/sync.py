"""Sync watermark and audit log models."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

FULL = "full"
INCREMENTAL = "incremental"

METADATA_ROW_ID = 1


class SyncMetadata(SQLModel, table=True):
    """
    Singleton row (id=1) holding the incremental sync watermark.

    Only written at the end of a successful run. A missing row means no sync
    has completed yet, which forces the next run to be a full sync.
    """

    __tablename__ = "sync_metadata"

    id: int = Field(default=METADATA_ROW_ID, primary_key=True)
    last_sync_timestamp: str  # ISO datetime; lower bound for the next incremental query
    last_sync_completed_at: int  # epoch ms
    total_articles_synced: int = 0
    sync_type: str = FULL  # "full" or "incremental"


class SyncRun(SQLModel, table=True):
    """Records each sync attempt for audit and debugging."""

    __tablename__ = "sync_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    sync_type: Optional[str] = None
    status: str = "running"  # "running", "success", "error"
    articles_fetched: int = 0
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    error_message: Optional[str] = None
