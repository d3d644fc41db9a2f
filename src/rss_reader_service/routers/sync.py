"""Sync API endpoints.

Design Decisions:

1. Background execution:
   - POST /api/sync creates a ``sync_status`` row and returns its id at once
   - The sync itself runs as a FastAPI background task; clients poll
     GET /api/sync/status/{sync_id}
   - Rationale: a full sync takes tens of seconds, far longer than a
     request should block

2. Daily budget check before scheduling:
   - Inoreader allows about 100 calls per day; a sync uses several
   - When the locally tracked budget is exhausted the endpoint answers 429
     with ``Retry-After`` and does not schedule anything

3. Push endpoints:
   - POST /api/sync/bidirectional drains the local change queue now
   - GET /api/sync/queue and DELETE /api/sync/queue/failed inspect and
     tidy the queue
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.database import get_db
from rss_reader_service.logging_config import get_logger
from rss_reader_service.schemas.sync import (
    ClearFailedResponse,
    PushRequest,
    PushResponse,
    QueueStatsResponse,
    RateLimitErrorResponse,
    SyncStartResponse,
    SyncStatusResponse,
)
from rss_reader_service.services import sync_status_service
from rss_reader_service.services.api_usage_service import check_rate_limit
from rss_reader_service.sync.bidirectional import clear_failed_items, push_service, queue_stats
from rss_reader_service.sync.server_sync import perform_server_sync

logger = get_logger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post(
    "",
    response_model=SyncStartResponse,
    status_code=status.HTTP_200_OK,
    summary="Start a server sync",
    responses={
        429: {
            "model": RateLimitErrorResponse,
            "description": "Daily Inoreader API budget exhausted",
        }
    },
)
async def start_sync(
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> SyncStartResponse | JSONResponse:
    """Schedule a server sync and return its id for polling."""
    budget = await check_rate_limit(db)
    if not budget.allowed:
        retry_after = settings.rate_limit_retry_seconds
        body = RateLimitErrorResponse(
            message="Daily API limit reached. Please try again later.",
            limit=budget.limit,
            used=budget.used,
            remaining=0,
            retry_after=retry_after,
        )
        logger.warning("sync_rejected_rate_limit", used=budget.used, limit=budget.limit)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(by_alias=True),
            headers={"Retry-After": str(retry_after)},
        )

    await sync_status_service.purge_expired_statuses(db)
    sync_status = await sync_status_service.create_sync_status(db)
    await db.commit()

    background_tasks.add_task(perform_server_sync, sync_status.sync_id, push_service=push_service)
    logger.info("sync_scheduled", sync_id=sync_status.sync_id)

    return SyncStartResponse(
        success=True,
        sync_id=sync_status.sync_id,
        message="Sync started",
        timestamp=sync_status.created_at,
    )


@router.get(
    "/status/{sync_id}",
    response_model=SyncStatusResponse,
    summary="Get sync progress",
)
async def get_sync_status(
    sync_id: str,
    db: AsyncSession = Depends(get_db),
) -> SyncStatusResponse:
    sync_status = await sync_status_service.get_sync_status(db, sync_id)
    if sync_status is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sync not found",
        )
    return SyncStatusResponse.model_validate(sync_status)


@router.post(
    "/bidirectional",
    response_model=PushResponse,
    summary="Push queued local changes to Inoreader",
)
async def push_local_changes(request: PushRequest | None = None) -> PushResponse:
    """Drain the local change queue.

    Without ``force`` the push only happens when the batching threshold is
    met (enough changes, a retry, or a stale change).
    """
    force = request.force if request else False
    try:
        result = await push_service.process_sync_queue(force=force)
    except Exception as e:
        logger.error("manual_push_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Push failed: {e}",
        ) from e

    return PushResponse(
        success=result.failed == 0,
        pending=result.pending,
        synced=result.synced,
        failed=result.failed,
        skipped_reason=result.skipped_reason,
        errors=result.errors,
    )


@router.get(
    "/queue",
    response_model=QueueStatsResponse,
    summary="Local change queue statistics",
)
async def get_queue_stats(
    db: AsyncSession = Depends(get_db),
) -> QueueStatsResponse:
    stats = await queue_stats(db)
    return QueueStatsResponse(
        **stats,
        is_processing=push_service.is_processing,
        last_processed_at=push_service.last_processed_at,
    )


@router.delete(
    "/queue/failed",
    response_model=ClearFailedResponse,
    summary="Delete queue items that exhausted their retries",
)
async def delete_failed_queue_items(
    db: AsyncSession = Depends(get_db),
) -> ClearFailedResponse:
    removed = await clear_failed_items(db)
    await db.commit()
    return ClearFailedResponse(removed=removed)
