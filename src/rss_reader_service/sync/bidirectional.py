"""Push of local read/star changes back to Inoreader.

Design Decisions:

1. Queue-driven:
   - Local state changes land in ``sync_queue``; this service drains it
   - Items are grouped by action and sent with one ``edit-tag`` call per
     batch of ``sync_batch_size`` ids
   - Sent rows are deleted; failed rows get ``sync_attempts`` incremented
     and are retried until ``sync_max_retries``

2. Batching threshold:
   - Upstream calls are scarce (daily zone limits), so a run only sends when
     forced, when retries are pending, when at least ``sync_min_changes``
     items are queued, or when the oldest item is older than
     ``sync_stale_change_minutes``

3. Single runner:
   - ``process_sync_queue`` is guarded by a flag; a call while a run is in
     progress returns immediately
   - ``start()`` runs the queue every ``sync_interval_minutes`` on an asyncio
     task; ``stop()`` cancels it

Error Handling:
- Upstream errors on a batch are recorded on the batch and the run moves on
- Any other failure ends the run, is logged, and clears the running flag
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rss_reader_service.config import settings
from rss_reader_service.database import AsyncSessionLocal
from rss_reader_service.inoreader import (
    READ_STATE,
    STARRED_STATE,
    InoreaderClient,
    InoreaderError,
    RateLimitCallback,
    RateLimitSnapshot,
)
from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import SyncQueueItem
from rss_reader_service.services.api_usage_service import record_rate_limit_snapshot, track_usage
from rss_reader_service.utils import chunked, ensure_utc, utc_now

logger = get_logger(__name__)

# action -> (add, remove) for edit-tag
EDIT_TAG_ARGS: dict[str, tuple[str | None, str | None]] = {
    "read": (READ_STATE, None),
    "unread": (None, READ_STATE),
    "star": (STARRED_STATE, None),
    "unstar": (None, STARRED_STATE),
}

ClientFactory = Callable[[RateLimitCallback | None], InoreaderClient]


def _default_client_factory(on_rate_limit: RateLimitCallback | None) -> InoreaderClient:
    return InoreaderClient.from_settings(on_rate_limit=on_rate_limit)


@dataclass(frozen=True)
class PushConfig:
    interval_minutes: int = 5
    min_changes: int = 5
    batch_size: int = 100
    max_retries: int = 3
    retry_backoff_minutes: int = 10
    stale_change_minutes: int = 15

    @classmethod
    def from_settings(cls) -> "PushConfig":
        return cls(
            interval_minutes=settings.sync_interval_minutes,
            min_changes=settings.sync_min_changes,
            batch_size=settings.sync_batch_size,
            max_retries=settings.sync_max_retries,
            retry_backoff_minutes=settings.sync_retry_backoff_minutes,
            stale_change_minutes=settings.sync_stale_change_minutes,
        )


@dataclass
class PushResult:
    """Outcome of one queue run."""

    pending: int = 0
    synced: int = 0
    failed: int = 0
    skipped_reason: str | None = None
    errors: list[str] = field(default_factory=list)


class BiDirectionalSyncService:
    """Drains ``sync_queue`` into Inoreader ``edit-tag`` calls."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        client_factory: ClientFactory = _default_client_factory,
        config: PushConfig | None = None,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.config = config or PushConfig.from_settings()
        self.is_processing = False
        self.last_processed_at: datetime | None = None
        self._task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Periodic loop
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic push loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_forever())
        logger.info("push_loop_started", interval_minutes=self.config.interval_minutes)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("push_loop_stopped")

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.process_sync_queue()
            except Exception as e:
                logger.error("push_run_failed", error=str(e))
            await asyncio.sleep(self.config.interval_minutes * 60)

    # ------------------------------------------------------------------
    # Queue processing
    # ------------------------------------------------------------------

    def should_sync(self, items: list[SyncQueueItem], force: bool = False) -> bool:
        """Decide whether a queue snapshot is worth an upstream call."""
        if not items:
            return False
        if force:
            return True
        if any(item.sync_attempts > 0 for item in items):
            return True
        if len(items) >= self.config.min_changes:
            return True
        oldest = min(ensure_utc(item.created_at) for item in items)
        return utc_now() - oldest > timedelta(minutes=self.config.stale_change_minutes)

    async def process_sync_queue(self, force: bool = False) -> PushResult:
        """Send pending queue items upstream.

        Args:
            force: Send even below the batching threshold
        """
        if self.is_processing:
            logger.info("push_already_running")
            return PushResult(skipped_reason="already_processing")

        self.is_processing = True
        try:
            async with self.session_factory() as db:
                return await self._process(db, force)
        finally:
            self.is_processing = False

    async def _process(self, db: AsyncSession, force: bool) -> PushResult:
        result = await db.execute(
            select(SyncQueueItem)
            .where(SyncQueueItem.sync_attempts < self.config.max_retries)
            .order_by(SyncQueueItem.created_at.asc(), SyncQueueItem.id.asc())
        )
        items = list(result.scalars().all())
        outcome = PushResult(pending=len(items))

        if not items:
            outcome.skipped_reason = "empty"
            return outcome

        if not self.should_sync(items, force):
            outcome.skipped_reason = "below_threshold"
            logger.info(
                "push_waiting_for_changes",
                pending=len(items),
                min_changes=self.config.min_changes,
            )
            return outcome

        grouped: dict[str, list[SyncQueueItem]] = defaultdict(list)
        for item in items:
            grouped[item.action_type].append(item)

        async def on_rate_limit(snapshot: RateLimitSnapshot) -> None:
            await record_rate_limit_snapshot(db, snapshot)

        async with self.client_factory(on_rate_limit) as client:
            for action, action_items in grouped.items():
                for batch in chunked(action_items, self.config.batch_size):
                    await self._send_batch(db, client, action, batch, outcome)

        self.last_processed_at = utc_now()
        logger.info(
            "push_completed",
            synced=outcome.synced,
            failed=outcome.failed,
            actions=sorted(grouped),
        )
        return outcome

    async def _send_batch(
        self,
        db: AsyncSession,
        client: InoreaderClient,
        action: str,
        batch: list[SyncQueueItem],
        outcome: PushResult,
    ) -> None:
        add, remove = EDIT_TAG_ARGS[action]
        ids = [item.id for item in batch]
        try:
            await client.edit_tag([item.inoreader_id for item in batch], add=add, remove=remove)
        except InoreaderError as e:
            await self._record_failure(db, batch, e)
            outcome.failed += len(batch)
            outcome.errors.append(f"{action}: {e}")
            return

        await track_usage(db, increment=1)
        await db.execute(delete(SyncQueueItem).where(SyncQueueItem.id.in_(ids)))
        await db.commit()
        outcome.synced += len(batch)
        logger.info("push_batch_sent", action=action, count=len(batch))

    async def _record_failure(
        self,
        db: AsyncSession,
        batch: list[SyncQueueItem],
        error: Exception,
    ) -> None:
        now = utc_now()
        for item in batch:
            item.sync_attempts += 1
            item.last_attempt_at = now
            if item.sync_attempts < self.config.max_retries:
                backoff = self.config.retry_backoff_minutes * 2 ** (item.sync_attempts - 1)
                logger.warning(
                    "push_item_retry_scheduled",
                    queue_id=item.id,
                    attempts=item.sync_attempts,
                    backoff_minutes=backoff,
                    error=str(error),
                )
            else:
                logger.error(
                    "push_item_max_retries",
                    queue_id=item.id,
                    inoreader_id=item.inoreader_id,
                    error=str(error),
                )
        await db.commit()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def queue_stats(self) -> dict[str, Any]:
        """Queue depth by action plus failed and oldest item info."""
        async with self.session_factory() as db:
            return await queue_stats(db, self.config.max_retries)

    async def clear_failed_items(self) -> int:
        """Delete items that exhausted their retries."""
        async with self.session_factory() as db:
            removed = await clear_failed_items(db, self.config.max_retries)
            await db.commit()
        return removed


async def queue_stats(db: AsyncSession, max_retries: int | None = None) -> dict[str, Any]:
    """Counts of pending and failed queue items."""
    max_retries = max_retries if max_retries is not None else settings.sync_max_retries

    by_action_result = await db.execute(
        select(SyncQueueItem.action_type, func.count(SyncQueueItem.id))
        .where(SyncQueueItem.sync_attempts < max_retries)
        .group_by(SyncQueueItem.action_type)
    )
    by_action = {action: count for action, count in by_action_result.all()}

    failed = (
        await db.execute(
            select(func.count(SyncQueueItem.id)).where(SyncQueueItem.sync_attempts >= max_retries)
        )
    ).scalar_one()
    oldest = (
        await db.execute(
            select(func.min(SyncQueueItem.created_at)).where(
                SyncQueueItem.sync_attempts < max_retries
            )
        )
    ).scalar_one_or_none()

    return {
        "pending": sum(by_action.values()),
        "failed": failed,
        "by_action": by_action,
        "oldest_pending_at": ensure_utc(oldest),
    }


async def clear_failed_items(db: AsyncSession, max_retries: int | None = None) -> int:
    """Delete queue items that exhausted their retries (caller commits)."""
    max_retries = max_retries if max_retries is not None else settings.sync_max_retries
    outcome = await db.execute(
        delete(SyncQueueItem).where(SyncQueueItem.sync_attempts >= max_retries)
    )
    removed = outcome.rowcount or 0
    logger.info("push_failed_items_cleared", count=removed)
    return removed


push_service = BiDirectionalSyncService()
