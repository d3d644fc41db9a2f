"""Full-text fetch statistics schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class FetchCounts(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class PeriodStats(FetchCounts):
    """Finished fetches in one period, split by trigger."""

    success_rate: float = Field(0, description="Successful share of finished fetches, percent")
    auto: FetchCounts = Field(default_factory=FetchCounts)
    manual: FetchCounts = Field(default_factory=FetchCounts)


class FeedPeriodStats(PeriodStats):
    avg_duration_ms: int | None = Field(None, description="Mean duration of successful fetches")


class OverallStats(BaseModel):
    today: PeriodStats
    this_month: PeriodStats
    lifetime: PeriodStats


class FeedFetchStats(BaseModel):
    feed_id: int
    feed_title: str
    today: FeedPeriodStats
    this_month: FeedPeriodStats
    lifetime: FeedPeriodStats


class ProblematicFeed(BaseModel):
    feed_title: str
    failure_count: int


class RecentFailure(BaseModel):
    article_id: int
    article_title: str
    feed_title: str
    error_reason: str | None
    original_url: str | None
    timestamp: datetime


class TopIssues(BaseModel):
    problematic_feeds: list[ProblematicFeed] = Field(
        ..., description="Feeds with the most failures this month (at most 5)"
    )
    recent_failures: list[RecentFailure] = Field(
        ..., description="Latest failures of articles still stored (at most 5)"
    )


class FetchStatsResponse(BaseModel):
    """Response of GET /api/analytics/fetch-stats.

    Periods are calendar based in UTC: ``today`` since midnight,
    ``this_month`` since the first of the month (including today).
    """

    overall: OverallStats
    feeds: list[FeedFetchStats] = Field(
        ..., description="Feeds with finished fetches, most fetched first"
    )
    top_issues: TopIssues
