"""Tests for daily API usage tracking and the rate limit check."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.inoreader import RateLimitSnapshot
from rss_reader_service.services.api_usage_service import (
    check_rate_limit,
    get_usage,
    record_rate_limit_snapshot,
    track_usage,
)


@pytest.mark.asyncio
async def test_fresh_day_is_allowed(db_session: AsyncSession) -> None:
    status = await check_rate_limit(db_session, limit=100)

    assert status.allowed
    assert status.used == 0
    assert status.remaining == 100


@pytest.mark.asyncio
async def test_track_usage_accumulates(db_session: AsyncSession) -> None:
    await track_usage(db_session, increment=4)
    await track_usage(db_session, increment=1)
    await db_session.commit()

    usage = await get_usage(db_session)
    assert usage is not None
    assert usage.count == 5


@pytest.mark.asyncio
async def test_limit_reached_is_not_allowed(db_session: AsyncSession) -> None:
    await track_usage(db_session, increment=100)

    status = await check_rate_limit(db_session, limit=100)

    assert not status.allowed
    assert status.remaining == 0
    assert status.used == 100


@pytest.mark.asyncio
async def test_one_call_left_is_allowed(db_session: AsyncSession) -> None:
    await track_usage(db_session, increment=99)

    status = await check_rate_limit(db_session, limit=100)

    assert status.allowed
    assert status.remaining == 1


@pytest.mark.asyncio
async def test_lookup_failure_allows_request() -> None:
    """A broken usage table must not block syncing."""
    db = AsyncMock()
    db.execute.side_effect = RuntimeError("relation api_usage does not exist")

    status = await check_rate_limit(db, limit=100)

    assert status.allowed
    assert status.remaining == 100


@pytest.mark.asyncio
async def test_snapshot_only_writes_present_fields(db_session: AsyncSession) -> None:
    await record_rate_limit_snapshot(
        db_session, RateLimitSnapshot(zone1_usage=10, zone1_limit=100, reset_after=600)
    )
    await record_rate_limit_snapshot(db_session, RateLimitSnapshot(zone1_usage=11))
    await db_session.commit()

    usage = await get_usage(db_session)
    assert usage is not None
    assert usage.zone1_usage == 11
    assert usage.zone1_limit == 100
    assert usage.reset_after == 600
    assert usage.zone2_usage is None
    assert usage.count == 0


@pytest.mark.asyncio
async def test_empty_snapshot_is_ignored(db_session: AsyncSession) -> None:
    assert await record_rate_limit_snapshot(db_session, RateLimitSnapshot()) is None
    assert await get_usage(db_session) is None
