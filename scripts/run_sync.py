#!/usr/bin/env python
"""Run the Inoreader sync outside the API server.

Replaces the cron-driven sync and the long-running push worker.

Usage:
    # One server sync (what POST /api/sync schedules)
    python scripts/run_sync.py sync

    # Push queued local changes once, ignoring the batching threshold
    python scripts/run_sync.py push --force

    # Push loop every SYNC_INTERVAL_MINUTES until interrupted
    python scripts/run_sync.py push --loop
"""

import argparse
import asyncio
import sys

from rss_reader_service.config import settings
from rss_reader_service.database import AsyncSessionLocal, engine
from rss_reader_service.logging_config import configure_logging, get_logger
from rss_reader_service.services import sync_status_service
from rss_reader_service.services.api_usage_service import check_rate_limit
from rss_reader_service.sync import perform_server_sync, push_service

logger = get_logger("run_sync")


async def run_server_sync() -> int:
    async with AsyncSessionLocal() as db:
        budget = await check_rate_limit(db)
        if not budget.allowed:
            print(f"Daily API limit reached ({budget.used}/{budget.limit}); not syncing")
            return 1
        await sync_status_service.purge_expired_statuses(db)
        sync_status = await sync_status_service.create_sync_status(db)
        await db.commit()
        sync_id = sync_status.sync_id

    await perform_server_sync(sync_id, push_service=push_service)

    async with AsyncSessionLocal() as db:
        sync_status = await sync_status_service.get_sync_status(db, sync_id)
    if sync_status is None or sync_status.status != "completed":
        error = sync_status.error_message if sync_status else "status row missing"
        print(f"❌ Sync {sync_id} failed: {error}")
        return 1
    print(f"✅ {sync_status.current_step}")
    return 0


async def run_push(force: bool, loop: bool) -> int:
    if not loop:
        result = await push_service.process_sync_queue(force=force)
        print(
            f"Pushed {result.synced} of {result.pending} queued changes "
            f"({result.failed} failed, skipped: {result.skipped_reason or 'no'})"
        )
        return 0 if result.failed == 0 else 1

    push_service.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await push_service.stop()


async def main(args: argparse.Namespace) -> int:
    try:
        if args.command == "sync":
            return await run_server_sync()
        return await run_push(args.force, args.loop)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("sync", help="Run one server sync")
    push_parser = subparsers.add_parser("push", help="Push queued local changes")
    push_parser.add_argument("--force", action="store_true", help="Ignore the batching threshold")
    push_parser.add_argument("--loop", action="store_true", help="Keep pushing on an interval")
    args = parser.parse_args()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
        sqlalchemy_level=settings.sqlalchemy_log_level,
    )
    try:
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        logger.info("run_sync_interrupted")
