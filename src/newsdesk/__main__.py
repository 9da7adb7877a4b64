"""
Main entrypoint for one-off syncs and the standalone sync worker.

The API runs separately under uvicorn and, by default, starts its own
scheduler (see Settings.run_scheduler).

Usage:
    python -m newsdesk sync          # incremental sync (full if never synced)
    python -m newsdesk sync --full   # full sync with deletion detection
    python -m newsdesk status        # print the current watermark
    python -m newsdesk               # start the scheduler worker
    uvicorn newsdesk.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import json
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _run_sync(full: bool) -> int:
    from newsdesk.db.engine import get_engine
    from newsdesk.sync.service import run_sync

    report = await run_sync(get_engine(), full=full)
    print(json.dumps(report.model_dump(), indent=2))
    return 0 if report.success else 1


def _print_status() -> int:
    from newsdesk.db.engine import get_engine
    from newsdesk.sync.metadata import get_sync_status

    status = get_sync_status(get_engine())
    print(json.dumps(status.model_dump(mode="json"), indent=2))
    return 0


async def _run_worker() -> None:
    from newsdesk.config import get_settings
    from newsdesk.db.engine import get_engine
    from newsdesk.scheduler.jobs import build_scheduler

    settings = get_settings()
    if not settings.notion_api_key or not settings.notion_database_id:
        logger.error("NOTION_API_KEY and NOTION_DATABASE_ID must be set.")
        sys.exit(1)

    scheduler = build_scheduler(get_engine())
    scheduler.start()
    logger.info(
        "Scheduler started (incremental sync every %d min)",
        settings.sync_interval_minutes,
    )

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="newsdesk")
    sub = parser.add_subparsers(dest="command")
    sync_parser = sub.add_parser("sync", help="Run one sync now")
    sync_parser.add_argument("--full", action="store_true", help="Force a full sync")
    sub.add_parser("status", help="Show the last sync watermark")
    args = parser.parse_args(argv)

    if args.command == "sync":
        return asyncio.run(_run_sync(args.full))
    if args.command == "status":
        return _print_status()
    asyncio.run(_run_worker())
    return 0


if __name__ == "__main__":
    sys.exit(main())
