"""Tests for the server sync job against a mocked Inoreader API."""

from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rss_reader_service.config import settings
from rss_reader_service.inoreader import (
    READ_STATE,
    STARRED_STATE,
    InoreaderClient,
    Subscription,
    TagItem,
)
from rss_reader_service.models import (
    ApiUsage,
    Article,
    ArticleTag,
    DeletedArticle,
    Feed,
    Folder,
    SyncQueueItem,
    SyncStatus,
    Tag,
    User,
)
from rss_reader_service.services import sync_status_service
from rss_reader_service.services.cleanup_service import ArticleCleanupService
from rss_reader_service.sync.bidirectional import PushResult
from rss_reader_service.sync.server_sync import perform_server_sync, should_full_sync, split_labels
from rss_reader_service.utils import utc_now

TECH_FEED = "feed/https://tech.example.com/rss"
NEWS_FEED = "feed/https://news.example.com/rss"


def stream_item(item_id: str, feed: str = TECH_FEED, *categories: str, **extra: Any) -> dict:
    item = {
        "id": item_id,
        "title": f"Title {item_id}",
        "published": int((utc_now() - timedelta(hours=1)).timestamp()),
        "categories": ["user/1005/state/com.google/reading-list", *categories],
        "origin": {"streamId": feed, "title": "Feed"},
        "canonical": [{"href": f"https://example.com/{item_id}"}],
        "summary": {"content": f"<p>{item_id}</p>"},
    }
    item.update(extra)
    return item


class FakeInoreader:
    """Canned Reader API; records stream query parameters."""

    def __init__(self) -> None:
        self.subscriptions: list[dict] = [
            {
                "id": TECH_FEED,
                "title": "Tech &amp; Code",
                "url": "https://tech.example.com/rss",
                "categories": [{"id": "user/1005/label/Tech", "label": "Tech"}],
            },
            {"id": NEWS_FEED, "title": "News", "url": "https://news.example.com/rss"},
        ]
        self.tags: list[dict] = [
            {"id": "user/1005/label/Tech", "type": "folder"},
            {"id": "user/1005/label/Must Read", "type": "tag"},
            {"id": "user/1005/state/com.google/starred"},
        ]
        self.items: list[dict] = []
        self.stream_params: list[dict[str, str]] = []
        self.failures: dict[str, httpx.Response] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/reader/api/0/")
        for prefix, response in self.failures.items():
            if path.startswith(prefix):
                return response
        headers = {"X-Reader-Zone1-Usage": "12", "X-Reader-Zone1-Limit": "100"}
        if path == "subscription/list":
            return httpx.Response(200, json={"subscriptions": self.subscriptions}, headers=headers)
        if path == "tag/list":
            return httpx.Response(200, json={"tags": self.tags}, headers=headers)
        if path == "unread-count":
            return httpx.Response(
                200,
                json={"unreadcounts": [{"id": TECH_FEED, "count": 7}]},
                headers=headers,
            )
        if path.startswith("stream/contents/"):
            self.stream_params.append(dict(request.url.params))
            return httpx.Response(200, json={"items": self.items}, headers=headers)
        return httpx.Response(404)

    def client_factory(self) -> Callable[..., InoreaderClient]:
        def factory(on_rate_limit):
            return InoreaderClient(
                "token",
                base_url="https://inoreader.test/reader/api/0",
                retry_delay=0,
                on_rate_limit=on_rate_limit,
                transport=httpx.MockTransport(self.handler),
            )

        return factory


@pytest.fixture
def upstream() -> FakeInoreader:
    return FakeInoreader()


@pytest.fixture(autouse=True)
def conflict_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "sync-conflicts.jsonl"
    monkeypatch.setattr(settings, "conflict_log_path", str(path))
    monkeypatch.setattr(settings, "delete_chunk_delay_seconds", 0)
    return path


async def run_sync(
    session_factory: async_sessionmaker[AsyncSession],
    upstream: FakeInoreader,
    push_service: Any = None,
) -> SyncStatus:
    async with session_factory() as db:
        status = await sync_status_service.create_sync_status(db)
        await db.commit()
        sync_id = status.sync_id

    await perform_server_sync(
        sync_id,
        session_factory=session_factory,
        client_factory=upstream.client_factory(),
        push_service=push_service,
    )

    async with session_factory() as db:
        result = await sync_status_service.get_sync_status(db, sync_id)
    assert result is not None
    return result


async def count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestHelpers:
    def test_split_labels(self) -> None:
        subscriptions = [
            Subscription.model_validate(
                {"id": TECH_FEED, "categories": [{"id": "user/1/label/Tech", "label": "Tech"}]}
            )
        ]
        tags = [
            TagItem(id="user/1/label/Tech"),
            TagItem(id="user/1/label/Later"),
            TagItem(id=STARRED_STATE),
        ]

        folders, tag_names = split_labels(subscriptions, tags)

        assert folders == {"Tech"}
        assert tag_names == {"Later"}

    def test_should_full_sync(self) -> None:
        now = int(utc_now().timestamp())
        assert should_full_sync(None, now)
        assert not should_full_sync(now - 3600, now)
        assert should_full_sync(now - 8 * 24 * 3600, now)


class TestFirstSync:
    @pytest.mark.asyncio
    async def test_full_sync_populates_store(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        upstream.items = [
            stream_item("a1", TECH_FEED, STARRED_STATE, "user/1005/label/Must Read"),
            stream_item("a2", NEWS_FEED, title="Ben &amp; Jerry&#039;s"),
            stream_item("orphan", "feed/https://unknown.example.com/rss"),
        ]

        status = await run_sync(session_factory, upstream)

        assert status.status == "completed", status.error_message
        assert status.progress_percentage == 100
        assert status.current_step == "Sync completed. Synced 2 feeds and 3 articles."
        assert status.metrics["new_articles"] == 2
        assert status.metrics["failed_feeds"] == 1
        assert status.metrics["new_tags"] == 1

        # Full sync: no ot=, unread only
        assert upstream.stream_params == [
            {"n": str(settings.sync_max_articles), "xt": READ_STATE}
        ]

        user = (await db_session.execute(select(User))).scalar_one()
        assert user.inoreader_id == settings.default_inoreader_id

        feeds = {
            f.inoreader_id: f for f in (await db_session.execute(select(Feed))).scalars()
        }
        assert feeds[TECH_FEED].title == "Tech & Code"
        assert feeds[TECH_FEED].folder_id == "user/1005/label/Tech"
        assert feeds[TECH_FEED].unread_count == 7
        assert feeds[NEWS_FEED].unread_count == 0
        folder = (await db_session.execute(select(Folder))).scalar_one()
        assert folder.name == "Tech"

        articles = {
            a.inoreader_id: a for a in (await db_session.execute(select(Article))).scalars()
        }
        assert set(articles) == {"a1", "a2"}
        assert articles["a1"].is_starred
        assert articles["a1"].url == "https://example.com/a1"
        assert articles["a1"].content == "<p>a1</p>"
        assert articles["a2"].title == "Ben & Jerry's"
        assert articles["a2"].last_sync_update is not None

        tag = (await db_session.execute(select(Tag))).scalar_one()
        assert (tag.name, tag.slug, tag.article_count) == ("Must Read", "must-read", 1)
        link = (await db_session.execute(select(ArticleTag))).scalar_one()
        assert link.article_id == articles["a1"].id

        assert status.sidebar == {
            "feed_counts": sorted(
                [[feeds[TECH_FEED].id, 1], [feeds[NEWS_FEED].id, 1]]
            ),
            "tags": [{"id": tag.id, "name": "Must Read", "count": 1}],
        }

    @pytest.mark.asyncio
    async def test_bookkeeping(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        await run_sync(session_factory, upstream)

        usage = (await db_session.execute(select(ApiUsage))).scalar_one()
        assert usage.count == settings.sync_api_calls_per_run
        assert usage.zone1_usage == 12
        assert usage.zone1_limit == 100

        last_sync = await sync_status_service.get_metadata(
            db_session, sync_status_service.LAST_SYNC_TIME_KEY
        )
        last_status = await sync_status_service.get_metadata(
            db_session, sync_status_service.LAST_SYNC_STATUS_KEY
        )
        assert last_sync is not None
        assert last_status == "completed"


class TestIncrementalSync:
    @pytest.mark.asyncio
    async def test_recent_sync_sends_newer_than(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        last = int(utc_now().timestamp()) - 3600
        await sync_status_service.set_metadata(
            db_session, sync_status_service.LAST_INCREMENTAL_SYNC_KEY, str(last)
        )
        await db_session.commit()

        await run_sync(session_factory, upstream)

        assert upstream.stream_params[0]["ot"] == str(last)

    @pytest.mark.asyncio
    async def test_old_sync_falls_back_to_full(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        last = int(utc_now().timestamp()) - 30 * 24 * 3600
        await sync_status_service.set_metadata(
            db_session, sync_status_service.LAST_INCREMENTAL_SYNC_KEY, str(last)
        )
        await db_session.commit()

        await run_sync(session_factory, upstream)

        assert "ot" not in upstream.stream_params[0]

    @pytest.mark.asyncio
    async def test_second_run_is_incremental(
        self, session_factory, upstream: FakeInoreader
    ) -> None:
        await run_sync(session_factory, upstream)
        await run_sync(session_factory, upstream)

        assert "ot" not in upstream.stream_params[0]
        assert "ot" in upstream.stream_params[1]


class TestReconciliation:
    @pytest.mark.asyncio
    async def test_tombstones_filter_and_resurrect(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        db_session.add_all(
            [DeletedArticle(inoreader_id="gone"), DeletedArticle(inoreader_id="back")]
        )
        await db_session.commit()
        upstream.items = [
            stream_item("gone", TECH_FEED, READ_STATE),
            stream_item("back", TECH_FEED),
        ]

        status = await run_sync(session_factory, upstream)

        assert status.status == "completed"
        stored = set((await db_session.execute(select(Article.inoreader_id))).scalars())
        assert stored == {"back"}
        tombstones = set((await db_session.execute(select(DeletedArticle.inoreader_id))).scalars())
        assert tombstones == {"gone"}

    @pytest.mark.asyncio
    async def test_numeric_user_id_states(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        db_session.add(DeletedArticle(inoreader_id="gone"))
        await db_session.commit()
        upstream.items = [
            stream_item(
                "gone",
                TECH_FEED,
                "user/1005/state/com.google/read",
                "user/1005/state/com.google/starred",
            ),
            stream_item("fav", TECH_FEED, "user/1005/state/com.google/starred"),
        ]

        status = await run_sync(session_factory, upstream)

        assert status.status == "completed"
        articles = (await db_session.execute(select(Article))).scalars().all()
        assert [(a.inoreader_id, a.is_read, a.is_starred) for a in articles] == [
            ("fav", False, True)
        ]
        assert await count(db_session, DeletedArticle) == 1


class TestConflicts:
    async def _existing(self, session_factory, *, local_age: timedelta, **state: Any) -> None:
        """Run a first sync, then simulate a local change ``local_age`` after it."""
        async with session_factory() as db:
            article = (
                await db.execute(select(Article).where(Article.inoreader_id == "c1"))
            ).scalar_one()
            for name, value in state.items():
                setattr(article, name, value)
            article.last_local_update = article.last_sync_update + local_age
            db.add(
                SyncQueueItem(
                    article_id=article.id,
                    inoreader_id="c1",
                    action_type="star" if state.get("is_starred") else "unstar",
                )
            )
            await db.commit()

    @pytest.mark.asyncio
    async def test_newer_local_change_wins(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader, conflict_log
    ) -> None:
        upstream.items = [stream_item("c1", TECH_FEED)]
        await run_sync(session_factory, upstream)
        await self._existing(session_factory, local_age=timedelta(minutes=5), is_starred=True)

        status = await run_sync(session_factory, upstream)

        article = (
            await db_session.execute(select(Article).where(Article.inoreader_id == "c1"))
        ).scalar_one()
        assert article.is_starred
        # The queued push survives so Inoreader catches up
        assert await count(db_session, SyncQueueItem) == 1
        assert status.current_step.endswith("Detected 1 conflicts.")
        assert conflict_log.read_text().count("\n") == 1

    @pytest.mark.asyncio
    async def test_stale_local_change_is_overwritten(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        upstream.items = [stream_item("c1", TECH_FEED)]
        await run_sync(session_factory, upstream)
        await self._existing(session_factory, local_age=-timedelta(minutes=5), is_starred=True)

        await run_sync(session_factory, upstream)

        article = (
            await db_session.execute(select(Article).where(Article.inoreader_id == "c1"))
        ).scalar_one()
        assert not article.is_starred
        assert await count(db_session, SyncQueueItem) == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_rate_limit_marks_sync_failed(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        upstream.failures["subscription/list"] = httpx.Response(429)

        status = await run_sync(session_factory, upstream)

        assert status.status == "failed"
        assert status.error_message == "Rate limit exceeded - sync incomplete"
        assert await count(db_session, Feed) == 0

    @pytest.mark.asyncio
    async def test_rate_limit_on_stream_stops_after_feeds(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        upstream.failures["stream/contents"] = httpx.Response(429)

        status = await run_sync(session_factory, upstream)

        assert status.status == "failed"
        assert status.error_message.startswith("Rate limit exceeded")
        # Feeds were committed by the earlier step
        assert await count(db_session, Feed) == 2

    @pytest.mark.asyncio
    async def test_tag_list_failure_is_not_fatal(
        self, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        upstream.failures["tag/list"] = httpx.Response(403)
        upstream.items = [stream_item("a1", TECH_FEED, "user/1005/label/Must Read")]

        status = await run_sync(session_factory, upstream)

        assert status.status == "completed"
        assert await count(db_session, Article) == 1
        assert await count(db_session, Tag) == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded(
        self, session_factory, upstream: FakeInoreader
    ) -> None:
        upstream.failures["unread-count"] = httpx.Response(500)

        status = await run_sync(session_factory, upstream)

        assert status.status == "failed"
        assert "500" in status.error_message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", ["cleanup_read_articles", "enforce_retention_limit"])
    async def test_cleanup_failure_is_not_fatal(
        self, step: str, session_factory, db_session: AsyncSession, upstream: FakeInoreader
    ) -> None:
        upstream.items = [stream_item("a1", TECH_FEED), stream_item("a2", NEWS_FEED)]

        with patch.object(ArticleCleanupService, step, side_effect=SQLAlchemyError("disk full")):
            status = await run_sync(session_factory, upstream)

        assert status.status == "completed"
        assert status.metrics["deleted_articles"] == 0
        stored = set((await db_session.execute(select(Article.inoreader_id))).scalars())
        assert stored == {"a1", "a2"}
        last_status = await sync_status_service.get_metadata(
            db_session, sync_status_service.LAST_SYNC_STATUS_KEY
        )
        assert last_status == "completed"


class TestPush:
    @pytest.mark.asyncio
    async def test_queued_changes_are_pushed_after_sync(
        self, session_factory, upstream: FakeInoreader
    ) -> None:
        push = AsyncMock()
        push.process_sync_queue.return_value = PushResult(synced=2)

        status = await run_sync(session_factory, upstream, push_service=push)

        assert status.status == "completed"
        push.process_sync_queue.assert_awaited_once_with(force=True)

    @pytest.mark.asyncio
    async def test_push_failure_is_not_fatal(
        self, session_factory, upstream: FakeInoreader
    ) -> None:
        push = AsyncMock()
        push.process_sync_queue.side_effect = RuntimeError("upstream down")

        status = await run_sync(session_factory, upstream, push_service=push)

        assert status.status == "completed"
