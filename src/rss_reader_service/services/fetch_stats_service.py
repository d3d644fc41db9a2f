"""Statistics over the full-text fetch log.

Attempt rows only mark the start of a fetch and are not counted; every
finished fetch has exactly one success or failure row. Aggregation runs in
Python over the finished rows: the log grows by one or two rows per manual
fetch, which keeps it small.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from statistics import mean

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.models import Article, Feed, FetchLog
from rss_reader_service.schemas.analytics import (
    FeedFetchStats,
    FeedPeriodStats,
    FetchCounts,
    FetchStatsResponse,
    OverallStats,
    PeriodStats,
    ProblematicFeed,
    RecentFailure,
    TopIssues,
)
from rss_reader_service.utils import ensure_utc, utc_now

TOP_ISSUES_LIMIT = 5


def success_rate(successful: int, total: int) -> float:
    """Percentage with one decimal; 0 when nothing finished."""
    return round(successful * 100 / total, 1) if total else 0


@dataclass
class _Bucket:
    auto: FetchCounts = field(default_factory=FetchCounts)
    manual: FetchCounts = field(default_factory=FetchCounts)
    durations: list[int] = field(default_factory=list)

    def add(self, fetch_type: str, status: str, duration_ms: int | None) -> None:
        counts = self.manual if fetch_type == "manual" else self.auto
        counts.total += 1
        if status == "success":
            counts.successful += 1
            if duration_ms:
                self.durations.append(duration_ms)
        else:
            counts.failed += 1

    def summary(self) -> FeedPeriodStats:
        total = self.auto.total + self.manual.total
        successful = self.auto.successful + self.manual.successful
        return FeedPeriodStats(
            total=total,
            successful=successful,
            failed=self.auto.failed + self.manual.failed,
            success_rate=success_rate(successful, total),
            auto=self.auto,
            manual=self.manual,
            avg_duration_ms=round(mean(self.durations)) if self.durations else None,
        )


@dataclass
class _PeriodBuckets:
    today: _Bucket = field(default_factory=_Bucket)
    this_month: _Bucket = field(default_factory=_Bucket)
    lifetime: _Bucket = field(default_factory=_Bucket)

    def add(
        self,
        created_at: datetime,
        day_start: datetime,
        month_start: datetime,
        fetch_type: str,
        status: str,
        duration_ms: int | None,
    ) -> None:
        self.lifetime.add(fetch_type, status, duration_ms)
        if created_at >= month_start:
            self.this_month.add(fetch_type, status, duration_ms)
        if created_at >= day_start:
            self.today.add(fetch_type, status, duration_ms)


def _overall(bucket: _Bucket) -> PeriodStats:
    return PeriodStats.model_validate(bucket.summary().model_dump(exclude={"avg_duration_ms"}))


async def get_fetch_stats(db: AsyncSession, now: datetime | None = None) -> FetchStatsResponse:
    """Fetch counts for today, this month and lifetime, overall and per feed.

    Args:
        db: Database session
        now: Reference time (UTC); defaults to the current time

    Returns:
        Overall and per-feed statistics with the most failing feeds of the
        month and the latest failures
    """
    now = now or utc_now()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = day_start.replace(day=1)

    rows = (
        await db.execute(
            select(
                FetchLog.fetch_type,
                FetchLog.status,
                FetchLog.created_at,
                FetchLog.duration_ms,
                Feed.id,
                Feed.title,
            )
            .outerjoin(Feed, Feed.id == FetchLog.feed_id)
            .where(FetchLog.status != "attempt")
        )
    ).all()

    overall = _PeriodBuckets()
    per_feed: dict[int, tuple[str, _PeriodBuckets]] = {}
    failures_this_month: Counter[str] = Counter()

    for fetch_type, status, created_at, duration_ms, feed_id, feed_title in rows:
        created_at = ensure_utc(created_at)
        args = (created_at, day_start, month_start, fetch_type, status, duration_ms)
        overall.add(*args)
        if feed_id is None:
            continue
        _, buckets = per_feed.setdefault(feed_id, (feed_title, _PeriodBuckets()))
        buckets.add(*args)
        if status == "failure" and created_at >= month_start:
            failures_this_month[feed_title] += 1

    feeds = [
        FeedFetchStats(
            feed_id=feed_id,
            feed_title=title,
            today=buckets.today.summary(),
            this_month=buckets.this_month.summary(),
            lifetime=buckets.lifetime.summary(),
        )
        for feed_id, (title, buckets) in per_feed.items()
    ]
    feeds.sort(key=lambda feed: feed.lifetime.total, reverse=True)

    return FetchStatsResponse(
        overall=OverallStats(
            today=_overall(overall.today),
            this_month=_overall(overall.this_month),
            lifetime=_overall(overall.lifetime),
        ),
        feeds=feeds,
        top_issues=TopIssues(
            problematic_feeds=[
                ProblematicFeed(feed_title=title, failure_count=count)
                for title, count in failures_this_month.most_common(TOP_ISSUES_LIMIT)
            ],
            recent_failures=await _recent_failures(db),
        ),
    )


async def _recent_failures(db: AsyncSession) -> list[RecentFailure]:
    rows = (
        await db.execute(
            select(
                FetchLog.article_id,
                Article.title,
                Article.url,
                Feed.title,
                FetchLog.error_reason,
                FetchLog.created_at,
            )
            .join(Article, Article.id == FetchLog.article_id)
            .join(Feed, Feed.id == FetchLog.feed_id)
            .where(FetchLog.status == "failure")
            .order_by(FetchLog.created_at.desc(), FetchLog.id.desc())
            .limit(TOP_ISSUES_LIMIT)
        )
    ).all()
    return [
        RecentFailure(
            article_id=article_id,
            article_title=article_title,
            feed_title=feed_title,
            error_reason=error_reason,
            original_url=url,
            timestamp=ensure_utc(created_at),
        )
        for article_id, article_title, url, feed_title, error_reason, created_at in rows
    ]
