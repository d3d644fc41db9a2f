"""Tests for full-text fetch statistics."""

from datetime import UTC, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.models import Article, Feed, FetchLog, User
from rss_reader_service.services.fetch_stats_service import get_fetch_stats, success_rate

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def test_success_rate() -> None:
    assert success_rate(0, 0) == 0
    assert success_rate(3, 7) == 42.9
    assert success_rate(2, 2) == 100


@pytest.fixture
async def logged(db_session: AsyncSession, user: User, feed: Feed) -> dict[str, Article]:
    """Fetch history over two feeds, relative to NOW."""
    other = Feed(user_id=user.id, inoreader_id="feed/https://other.example.com/rss", title="Other")
    db_session.add(other)
    await db_session.flush()
    blog_post = Article(feed_id=feed.id, inoreader_id="item-a", title="Blog post", url="https://a")
    other_post = Article(feed_id=other.id, inoreader_id="item-b", title="Other post", url=None)
    db_session.add_all([blog_post, other_post])
    await db_session.flush()

    def log(article, status, when, *, fetch_type="manual", reason=None, duration=None):
        return FetchLog(
            article_id=article.id if article else None,
            feed_id=article.feed_id if article else None,
            fetch_type=fetch_type,
            status=status,
            error_reason=reason,
            duration_ms=duration,
            created_at=when,
        )

    db_session.add_all(
        [
            log(blog_post, "attempt", datetime(2026, 10, 18, 9, tzinfo=UTC)),
            log(blog_post, "success", datetime(2026, 10, 18, 9, tzinfo=UTC), duration=100),
            log(blog_post, "success", datetime(2026, 10, 18, 10, tzinfo=UTC), duration=300),
            log(blog_post, "failure", datetime(2026, 10, 18, 11, tzinfo=UTC), reason="timeout"),
            log(
                blog_post,
                "success",
                datetime(2026, 10, 2, 8, tzinfo=UTC),
                fetch_type="auto",
                duration=200,
            ),
            log(other_post, "failure", datetime(2026, 9, 20, tzinfo=UTC), reason="no_url"),
            log(other_post, "failure", datetime(2026, 10, 5, tzinfo=UTC), reason="no_url"),
            log(other_post, "failure", datetime(2026, 10, 6, tzinfo=UTC), reason="no_url"),
            # Article and feed deleted since
            log(None, "failure", datetime(2026, 10, 18, 8, tzinfo=UTC), reason="exception"),
        ]
    )
    await db_session.commit()
    return {"blog": blog_post, "other": other_post}


class TestFetchStats:
    @pytest.mark.asyncio
    async def test_empty_log(self, db_session: AsyncSession) -> None:
        stats = await get_fetch_stats(db_session, now=NOW)

        assert stats.overall.lifetime.total == 0
        assert stats.overall.lifetime.success_rate == 0
        assert stats.feeds == []
        assert stats.top_issues.problematic_feeds == []
        assert stats.top_issues.recent_failures == []

    @pytest.mark.asyncio
    async def test_overall_periods(self, db_session: AsyncSession, logged) -> None:
        overall = (await get_fetch_stats(db_session, now=NOW)).overall

        assert (overall.today.total, overall.today.successful, overall.today.failed) == (4, 2, 2)
        assert overall.today.success_rate == 50.0
        assert overall.today.auto.total == 0

        assert (overall.this_month.total, overall.this_month.failed) == (7, 4)
        assert overall.this_month.auto.successful == 1

        assert (overall.lifetime.total, overall.lifetime.successful) == (8, 3)
        assert overall.lifetime.success_rate == 37.5
        assert overall.lifetime.manual.failed == 5

    @pytest.mark.asyncio
    async def test_per_feed(self, db_session: AsyncSession, feed: Feed, logged) -> None:
        feeds = (await get_fetch_stats(db_session, now=NOW)).feeds

        assert [f.feed_title for f in feeds] == ["Example Blog", "Other"]
        blog = feeds[0]
        assert blog.feed_id == feed.id
        assert (blog.today.total, blog.today.successful, blog.today.failed) == (3, 2, 1)
        assert blog.today.avg_duration_ms == 200
        assert blog.lifetime.total == 4
        assert blog.lifetime.auto.total == 1
        other = feeds[1]
        assert other.this_month.failed == 2
        assert other.lifetime.failed == 3
        assert other.lifetime.avg_duration_ms is None

    @pytest.mark.asyncio
    async def test_top_issues(self, db_session: AsyncSession, logged) -> None:
        issues = (await get_fetch_stats(db_session, now=NOW)).top_issues

        assert [(p.feed_title, p.failure_count) for p in issues.problematic_feeds] == [
            ("Other", 2),
            ("Example Blog", 1),
        ]
        failures = issues.recent_failures
        assert [f.article_id for f in failures] == [
            logged["blog"].id,
            logged["other"].id,
            logged["other"].id,
            logged["other"].id,
        ]
        assert failures[0].error_reason == "timeout"
        assert failures[0].original_url == "https://a"
        assert failures[0].feed_title == "Example Blog"
        assert failures[0].timestamp == datetime(2026, 10, 18, 11, tzinfo=UTC)
