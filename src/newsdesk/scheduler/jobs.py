"""
APScheduler jobs for background sync.

Every few minutes an incremental sync picks up pages edited since the last
watermark. A nightly full sync catches what incremental runs can't see:
articles deleted in Notion or moved out of Published.

The scheduler runs inside the API process (wired in api/main.py) or the
standalone worker (`python -m newsdesk`).
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from newsdesk.config import get_settings

logger = logging.getLogger(__name__)


def build_scheduler(engine) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        engine: SQLAlchemy engine to pass to the sync service.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _scheduled_sync,
        trigger="interval",
        minutes=settings.sync_interval_minutes,
        id="incremental_sync",
        replace_existing=True,
        max_instances=1,
        kwargs={"engine": engine, "full": False},
    )

    if settings.full_sync_hour is not None:
        scheduler.add_job(
            _scheduled_sync,
            trigger="cron",
            hour=settings.full_sync_hour,
            minute=0,
            id="nightly_full_sync",
            replace_existing=True,
            kwargs={"engine": engine, "full": True},
        )

    return scheduler


async def _scheduled_sync(engine, full: bool = False) -> None:
    """
    Scheduled job body: run one sync in-process.

    Failures are logged, never raised, so the scheduler stays alive.
    """
    from newsdesk.sync.service import run_sync

    try:
        report = await run_sync(engine, full=full)
        if report.success:
            logger.info(
                "Scheduled %s sync done: %s", report.sync_type, report.stats.model_dump()
            )
        else:
            logger.error("Scheduled sync failed: %s", report.error)
    except Exception:
        logger.exception("Scheduled sync crashed")
