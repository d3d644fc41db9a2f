"""Health check endpoints."""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.database import get_db
from rss_reader_service.logging_config import get_logger
from rss_reader_service.schemas.health import (
    ApiUsageSummary,
    HealthResponse,
    SyncHealthResponse,
)
from rss_reader_service.services import sync_status_service
from rss_reader_service.services.api_usage_service import (
    WARNING_THRESHOLD,
    get_usage,
    today_utc,
)
from rss_reader_service.sync.bidirectional import queue_stats
from rss_reader_service.utils import ensure_utc, utc_now

logger = get_logger(__name__)

router = APIRouter(tags=["health"])

# A scheduled sync runs every few hours; older than this is worth a warning
STALE_SYNC_AFTER = timedelta(hours=12)


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    description=(
        "Returns service health status including database connectivity. "
        "No authentication required."
    ),
    responses={
        200: {
            "description": "Service is healthy or degraded",
            "content": {
                "application/json": {
                    "examples": {
                        "healthy": {
                            "summary": "All systems operational",
                            "value": {
                                "status": "ok",
                                "version": "0.1.0",
                                "database": "connected",
                            },
                        },
                        "degraded": {
                            "summary": "Database unavailable",
                            "value": {
                                "status": "degraded",
                                "version": "0.1.0",
                                "database": "disconnected",
                            },
                        },
                    }
                }
            },
        }
    },
)
async def health_check(
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """Health check endpoint.

    Design Decision: Graceful degradation instead of failing hard

    Rationale: Health checks should always respond (even if the DB is down)
    so monitoring can tell "service dead" from "service alive but degraded".

    Error Handling:
    - Database connection errors: Caught and returned as "degraded" status
    - No exceptions propagated

    Args:
        db: Async database session (injected by FastAPI)

    Returns:
        HealthResponse with current service status
    """
    database_status = "disconnected"
    try:
        await db.execute(text("SELECT 1"))
        database_status = "connected"
    except Exception as e:
        logger.error("health_check_database_failed", error=str(e))

    overall_status = "ok" if database_status == "connected" else "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.app_version,
        database=database_status,
    )


@router.get(
    "/api/health/sync",
    response_model=SyncHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync health",
    description=(
        "Last server sync time and outcome, pending and failed push queue "
        "items, and today's Inoreader API usage."
    ),
)
async def sync_health(
    db: AsyncSession = Depends(get_db),
) -> SyncHealthResponse:
    last_sync_raw = await sync_status_service.get_metadata(
        db, sync_status_service.LAST_SYNC_TIME_KEY
    )
    last_sync_status = await sync_status_service.get_metadata(
        db, sync_status_service.LAST_SYNC_STATUS_KEY
    )
    last_sync_time = None
    if last_sync_raw:
        try:
            last_sync_time = ensure_utc(datetime.fromisoformat(last_sync_raw))
        except ValueError:
            logger.warning("sync_health_bad_timestamp", value=last_sync_raw)

    queue = await queue_stats(db)
    usage_row = await get_usage(db)
    used = usage_row.count if usage_row else 0
    limit = settings.rate_limit_daily_calls
    usage = ApiUsageSummary(
        date=today_utc().isoformat(),
        count=used,
        limit=limit,
        remaining=max(0, limit - used),
        zone1_usage=usage_row.zone1_usage if usage_row else None,
        zone1_limit=usage_row.zone1_limit if usage_row else None,
        zone2_usage=usage_row.zone2_usage if usage_row else None,
        zone2_limit=usage_row.zone2_limit if usage_row else None,
    )

    warnings: list[str] = []
    if last_sync_time is None:
        warnings.append("No sync has completed yet")
    elif utc_now() - last_sync_time > STALE_SYNC_AFTER:
        warnings.append("Last sync is older than 12 hours")
    if usage.remaining <= WARNING_THRESHOLD:
        warnings.append(f"Only {usage.remaining} API calls left today")
    if queue["failed"]:
        warnings.append(f"{queue['failed']} local changes failed to sync")

    if last_sync_status == "failed":
        overall = "error"
    elif warnings:
        overall = "warning"
    else:
        overall = "healthy"

    return SyncHealthResponse(
        status=overall,
        last_sync_time=last_sync_time,
        last_sync_status=last_sync_status,
        pending_push=queue["pending"],
        failed_push=queue["failed"],
        api_usage=usage,
        warnings=warnings,
    )
