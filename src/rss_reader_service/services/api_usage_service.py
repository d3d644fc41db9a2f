"""Daily API usage tracking and rate limit checks for Inoreader.

Design Decisions:

1. Local counter as the gate:
   - Inoreader allows roughly 100 zone 1 calls per day on the free tier
   - Every server sync spends a fixed number of calls, tracked here before
     the upstream headers are known
   - POST /api/sync refuses to start when the local counter is exhausted

2. Upstream headers as the truth:
   - Zone usage/limit headers from every response are stored on the same
     row so the UI can show what Inoreader itself reports

3. Fail open:
   - A failed usage lookup allows the sync; a missed sync is worse than
     one extra call
"""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.inoreader.rate_limits import RateLimitSnapshot
from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import ApiUsage
from rss_reader_service.utils import utc_now

logger = get_logger(__name__)

INOREADER_SERVICE = "inoreader"

# remaining <= WARNING_THRESHOLD logs a warning, <= CRITICAL_THRESHOLD an error
WARNING_THRESHOLD = 20
CRITICAL_THRESHOLD = 5


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    remaining: int
    used: int
    limit: int


def today_utc() -> date:
    return utc_now().date()


async def get_usage(
    db: AsyncSession,
    service: str = INOREADER_SERVICE,
    day: date | None = None,
) -> ApiUsage | None:
    """Usage row for a service and day (today by default)."""
    stmt = select(ApiUsage).where(
        ApiUsage.service == service,
        ApiUsage.date == (day or today_utc()),
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _get_or_create_usage(db: AsyncSession, service: str, day: date) -> ApiUsage:
    usage = await get_usage(db, service, day)
    if usage is None:
        usage = ApiUsage(service=service, date=day, count=0)
        db.add(usage)
        await db.flush()
    return usage


async def check_rate_limit(db: AsyncSession, limit: int | None = None) -> RateLimitStatus:
    """Check today's local call counter against the daily limit.

    Returns:
        RateLimitStatus; ``allowed`` while calls remain
    """
    limit = limit if limit is not None else settings.rate_limit_daily_calls
    try:
        usage = await get_usage(db)
    except Exception as e:
        logger.error("rate_limit_check_failed", error=str(e))
        return RateLimitStatus(allowed=True, remaining=limit, used=0, limit=limit)

    used = usage.count if usage else 0
    remaining = limit - used

    if CRITICAL_THRESHOLD < remaining <= WARNING_THRESHOLD:
        logger.warning("rate_limit_warning", remaining=remaining, limit=limit)
    elif remaining <= CRITICAL_THRESHOLD:
        logger.error("rate_limit_critical", remaining=remaining, limit=limit)

    return RateLimitStatus(allowed=remaining > 0, remaining=remaining, used=used, limit=limit)


async def track_usage(
    db: AsyncSession,
    service: str = INOREADER_SERVICE,
    increment: int = 1,
) -> ApiUsage:
    """Add ``increment`` calls to today's counter (flushes, caller commits)."""
    usage = await _get_or_create_usage(db, service, today_utc())
    usage.count = (usage.count or 0) + increment
    await db.flush()
    return usage


async def record_rate_limit_snapshot(
    db: AsyncSession,
    snapshot: RateLimitSnapshot,
    service: str = INOREADER_SERVICE,
) -> ApiUsage | None:
    """Store upstream zone usage on today's row.

    Only fields present in the snapshot are written; an empty snapshot is
    ignored.
    """
    if snapshot.is_empty:
        return None

    usage = await _get_or_create_usage(db, service, today_utc())
    for field_name in ("zone1_usage", "zone1_limit", "zone2_usage", "zone2_limit", "reset_after"):
        value = getattr(snapshot, field_name)
        if value is not None:
            setattr(usage, field_name, value)
    await db.flush()

    logger.debug(
        "rate_limit_headers_captured",
        zone1_usage=snapshot.zone1_usage,
        zone1_limit=snapshot.zone1_limit,
        zone2_usage=snapshot.zone2_usage,
        zone2_limit=snapshot.zone2_limit,
    )
    return usage
