"""Persistence of server sync progress and sync metadata."""

import uuid
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import SyncMetadata, SyncStatus
from rss_reader_service.models.sync import sync_status_expiry
from rss_reader_service.utils import utc_now

logger = get_logger(__name__)

LAST_SYNC_TIME_KEY = "last_sync_time"
LAST_INCREMENTAL_SYNC_KEY = "last_incremental_sync_timestamp"
LAST_SYNC_STATUS_KEY = "last_sync_status"


async def create_sync_status(db: AsyncSession) -> SyncStatus:
    """Create a pending status row with a fresh sync id."""
    now = utc_now()
    status = SyncStatus(
        sync_id=str(uuid.uuid4()),
        status="pending",
        progress_percentage=0,
        created_at=now,
        expires_at=sync_status_expiry(now),
    )
    db.add(status)
    await db.flush()
    return status


async def get_sync_status(db: AsyncSession, sync_id: str) -> SyncStatus | None:
    result = await db.execute(select(SyncStatus).where(SyncStatus.sync_id == sync_id))
    return result.scalar_one_or_none()


async def update_sync_status(
    db: AsyncSession,
    sync_id: str,
    **fields: Any,
) -> SyncStatus | None:
    """Set fields on a status row and commit so pollers see progress."""
    status = await get_sync_status(db, sync_id)
    if status is None:
        logger.warning("sync_status_missing", sync_id=sync_id)
        return None
    for name, value in fields.items():
        setattr(status, name, value)
    await db.commit()
    return status


async def purge_expired_statuses(db: AsyncSession) -> int:
    """Delete status rows past their expiry."""
    outcome = await db.execute(delete(SyncStatus).where(SyncStatus.expires_at < utc_now()))
    removed = outcome.rowcount or 0
    if removed:
        logger.info("sync_statuses_purged", count=removed)
    return removed


async def get_metadata(db: AsyncSession, key: str) -> str | None:
    result = await db.execute(select(SyncMetadata.value).where(SyncMetadata.key == key))
    return result.scalar_one_or_none()


async def set_metadata(db: AsyncSession, key: str, value: str) -> None:
    row = await db.get(SyncMetadata, key)
    if row is None:
        db.add(SyncMetadata(key=key, value=value))
    else:
        row.value = value
    await db.flush()
