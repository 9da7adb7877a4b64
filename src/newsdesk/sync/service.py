"""
ArticleSyncService: mirrors published Notion articles into the local DB.

Flow for a single run:
  1. Create SyncRun audit row (status="running")
  2. Decide the mode: full if requested or no watermark exists, else incremental
  3. Page through the database query (filtered by watermark if incremental);
     for each page of results fetch block content, 5 articles at a time
  4. Reconcile against the `articles` table (deletes only on full sync)
  5. Save the new watermark = the time the run started
  6. Update SyncRun (status="success") and return a SyncReport

On any exception: the watermark is left untouched, SyncRun records the error,
and run() returns a failed SyncReport. run() never raises, so the scheduler
and API callers only ever see a report.

Known gap: an incremental run never sees a page that moved from Published to
another status, because the query only returns Published pages. Such an
article stays in the mirror until the next full sync (the scheduler runs one
nightly).
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlmodel import Session

from newsdesk.cache import get_cache
from newsdesk.config import get_settings
from newsdesk.models.article import PUBLISHED
from newsdesk.models.sync import FULL, INCREMENTAL, SyncRun
from newsdesk.notion.client import PUBLISH_DATE_SORT, NotionClient, published_filter
from newsdesk.notion.projection import project_page
from newsdesk.sync.metadata import load_metadata, save_metadata
from newsdesk.sync.reconcile import ReconcileStats, reconcile

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    DETERMINING_MODE = "determining_mode"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    UPDATING_WATERMARK = "updating_watermark"
    DONE = "done"
    FAILED = "failed"


class SyncStats(BaseModel):
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    deleted: int = 0


class SyncReport(BaseModel):
    success: bool
    sync_type: Optional[str] = None
    duration_ms: int = 0
    stats: SyncStats = Field(default_factory=SyncStats)
    previous_watermark: Optional[str] = None
    new_watermark: Optional[str] = None
    error: Optional[str] = None
    timestamp: str


def _utc_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ArticleSyncService:
    """Orchestrates Notion → DB sync of the articles database."""

    def __init__(
        self,
        client,
        engine,
        *,
        database_id: Optional[str] = None,
        page_size: Optional[int] = None,
        batch_size: Optional[int] = None,
        max_blocks: Optional[int] = None,
    ):
        """
        Args:
            client: NotionClient instance (or AsyncMock in tests).
            engine: SQLAlchemy engine (SQLModel create_engine result).
            database_id, page_size, batch_size, max_blocks: Override Settings.
        """
        settings = get_settings()
        self.client = client
        self.engine = engine
        self.database_id = database_id or settings.notion_database_id
        self.page_size = page_size or settings.sync_page_size
        self.batch_size = batch_size or settings.block_batch_size
        self.max_blocks = max_blocks or settings.max_blocks_per_article
        self.state = SyncState.IDLE

    async def run(self, full: bool = False) -> SyncReport:
        """
        Run one sync.

        Args:
            full: Force a full sync even if a watermark exists.

        Returns:
            SyncReport; success=False if anything failed.
        """
        started = time.monotonic()
        # Captured before fetching so pages edited mid-run are picked up next time
        run_started_at = _utc_iso(datetime.now(timezone.utc))
        sync_type: Optional[str] = None
        previous_watermark: Optional[str] = None
        run_log: Optional[SyncRun] = None

        try:
            run_log = self._create_sync_run()

            self._transition(SyncState.DETERMINING_MODE)
            metadata = load_metadata(self.engine)
            previous_watermark = metadata.last_sync_timestamp if metadata else None
            if full or metadata is None:
                sync_type, since = FULL, None
            else:
                sync_type, since = INCREMENTAL, previous_watermark
            logger.info(
                "Starting %s sync (watermark=%s)", sync_type, since or "none"
            )

            self._transition(SyncState.FETCHING)
            articles = await self.fetch_published_articles(since)
            logger.info("Fetched %d articles from Notion", len(articles))

            self._transition(SyncState.RECONCILING)
            stats = reconcile(articles, self.engine, delete_missing=(sync_type == FULL))

            self._transition(SyncState.UPDATING_WATERMARK)
            save_metadata(
                self.engine,
                last_sync_timestamp=run_started_at,
                total_articles_synced=len(articles),
                sync_type=sync_type,
            )

            self._finish_sync_run(
                run_log, status="success", sync_type=sync_type,
                fetched=len(articles), stats=stats,
            )
            self._transition(SyncState.DONE)
            report = SyncReport(
                success=True,
                sync_type=sync_type,
                duration_ms=int((time.monotonic() - started) * 1000),
                stats=SyncStats(fetched=len(articles), **stats.to_dict()),
                previous_watermark=previous_watermark,
                new_watermark=run_started_at,
                timestamp=_utc_iso(datetime.now(timezone.utc)),
            )
            logger.info("Sync completed: %s", report.model_dump())
            return report

        except Exception as exc:
            self._transition(SyncState.FAILED)
            logger.exception("Sync failed")
            if run_log is not None:
                self._record_failure(run_log, sync_type, str(exc))
            return SyncReport(
                success=False,
                sync_type=sync_type,
                duration_ms=int((time.monotonic() - started) * 1000),
                previous_watermark=previous_watermark,
                new_watermark=previous_watermark,
                error=str(exc),
                timestamp=_utc_iso(datetime.now(timezone.utc)),
            )

    async def fetch_published_articles(self, since: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Fetch every published article (edited on or after `since`, if given)
        with its block content.

        Query pages are fetched one after another since each needs the
        previous cursor. Within a page, block content is fetched
        `batch_size` articles at a time.
        """
        articles: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            page = await self.client.query_database(
                self.database_id,
                filter=published_filter(since),
                sorts=PUBLISH_DATE_SORT,
                page_size=self.page_size,
                start_cursor=cursor,
            )

            records = []
            for raw in page.results:
                record = project_page(raw)
                if record["status"] != PUBLISHED:
                    logger.warning(
                        "Skipping page %s with status %r", record["id"], record["status"]
                    )
                    continue
                records.append(record)

            for i in range(0, len(records), self.batch_size):
                batch = records[i:i + self.batch_size]
                contents = await asyncio.gather(
                    *(self.client.fetch_all_blocks(r["id"], self.max_blocks) for r in batch)
                )
                for record, blocks in zip(batch, contents):
                    articles.append({**record, "content": blocks})

            cursor = page.next_cursor
            if not page.has_more or not cursor:
                break

        return articles

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _transition(self, state: SyncState) -> None:
        logger.debug("Sync state %s -> %s", self.state.value, state.value)
        self.state = state

    def _create_sync_run(self) -> SyncRun:
        log = SyncRun(started_at=datetime.utcnow(), status="running")
        with Session(self.engine) as s:
            s.add(log)
            s.commit()
            s.refresh(log)
        return log

    def _finish_sync_run(
        self,
        log: SyncRun,
        *,
        status: str,
        sync_type: Optional[str],
        fetched: int = 0,
        stats: Optional[ReconcileStats] = None,
        error_message: Optional[str] = None,
    ) -> None:
        stats = stats or ReconcileStats()
        with Session(self.engine) as s:
            db_log = s.get(SyncRun, log.id)
            db_log.status = status
            db_log.sync_type = sync_type
            db_log.finished_at = datetime.utcnow()
            db_log.articles_fetched = fetched
            db_log.inserted = stats.inserted
            db_log.updated = stats.updated
            db_log.deleted = stats.deleted
            db_log.error_message = error_message
            s.add(db_log)
            s.commit()

    def _record_failure(self, log: SyncRun, sync_type: Optional[str], message: str) -> None:
        # The DB itself may be what failed; the report still goes out.
        try:
            self._finish_sync_run(
                log, status="error", sync_type=sync_type, error_message=message
            )
        except Exception:
            logger.exception("Could not record failed sync run %s", log.id)


async def run_sync(engine, *, full: bool = False) -> SyncReport:
    """
    Build a NotionClient from settings, run one sync, and flush the read
    cache if it succeeded. Shared by the API trigger, scheduler and CLI.
    """
    settings = get_settings()
    async with NotionClient(settings.notion_api_key) as client:
        service = ArticleSyncService(client=client, engine=engine)
        report = await service.run(full=full)

    if report.success:
        get_cache().invalidate()
    return report
