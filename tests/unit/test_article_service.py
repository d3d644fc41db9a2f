"""Tests for article listing and local state changes."""

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.models import ArticleTag, Feed, SyncQueueItem, Tag, User
from rss_reader_service.services import article_service


async def queued(db: AsyncSession) -> list[tuple[str, str]]:
    result = await db.execute(
        select(SyncQueueItem.inoreader_id, SyncQueueItem.action_type).order_by(SyncQueueItem.id)
    )
    return list(result.tuples().all())


class TestListArticles:
    @pytest.mark.asyncio
    async def test_newest_first_with_total(
        self, db_session: AsyncSession, user: User, make_article
    ) -> None:
        first = await make_article()  # published 1h ago
        second = await make_article()  # published 2h ago
        await make_article()

        articles, total = await article_service.list_articles(db_session, user.id, limit=2)

        assert total == 3
        assert [a.id for a in articles] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_offset(self, db_session: AsyncSession, user: User, make_article) -> None:
        await make_article()
        await make_article()
        last = await make_article()

        articles, total = await article_service.list_articles(
            db_session, user.id, limit=10, offset=2
        )

        assert total == 3
        assert [a.id for a in articles] == [last.id]

    @pytest.mark.asyncio
    async def test_filters(
        self, db_session: AsyncSession, user: User, feed: Feed, tag: Tag, make_article
    ) -> None:
        tagged = await make_article()
        read = await make_article(is_read=True)
        other_feed = Feed(
            user_id=user.id, inoreader_id="feed/https://other.example.com/rss", title="Other"
        )
        db_session.add(other_feed)
        await db_session.commit()
        elsewhere = await make_article(feed_id=other_feed.id)
        db_session.add(ArticleTag(article_id=tagged.id, tag_id=tag.id))
        await db_session.commit()

        by_feed, _ = await article_service.list_articles(db_session, user.id, feed_id=feed.id)
        by_tag, _ = await article_service.list_articles(db_session, user.id, tag_id=tag.id)
        unread, _ = await article_service.list_articles(db_session, user.id, unread_only=True)

        assert {a.id for a in by_feed} == {tagged.id, read.id}
        assert [a.id for a in by_tag] == [tagged.id]
        assert {a.id for a in unread} == {tagged.id, elsewhere.id}

    @pytest.mark.asyncio
    async def test_other_users_articles_hidden(
        self, db_session: AsyncSession, user: User, make_article
    ) -> None:
        article = await make_article()
        stranger = User(email="other@local", inoreader_id="other", preferences={})
        db_session.add(stranger)
        await db_session.commit()

        articles, total = await article_service.list_articles(db_session, stranger.id)

        assert (articles, total) == ([], 0)
        assert await article_service.get_article(db_session, stranger.id, article.id) is None
        assert await article_service.get_article(db_session, user.id, article.id) is not None


class TestUpdateArticleState:
    @pytest.mark.asyncio
    async def test_change_is_stamped_and_queued(
        self, db_session: AsyncSession, make_article
    ) -> None:
        article = await make_article("item-1")

        actions = await article_service.update_article_state(
            db_session, article, is_read=True, is_starred=True
        )
        await db_session.commit()

        assert actions == ["read", "star"]
        assert article.is_read and article.is_starred
        assert article.last_local_update is not None
        assert await queued(db_session) == [("item-1", "read"), ("item-1", "star")]

    @pytest.mark.asyncio
    async def test_no_op_queues_nothing(self, db_session: AsyncSession, make_article) -> None:
        article = await make_article(is_read=True)

        actions = await article_service.update_article_state(db_session, article, is_read=True)

        assert actions == []
        assert article.last_local_update is None
        assert await queued(db_session) == []

    @pytest.mark.asyncio
    async def test_opposite_action_replaces_pending(
        self, db_session: AsyncSession, make_article
    ) -> None:
        article = await make_article("item-1")

        await article_service.update_article_state(db_session, article, is_read=True)
        await article_service.update_article_state(db_session, article, is_starred=True)
        await article_service.update_article_state(db_session, article, is_read=False)
        await db_session.commit()

        assert await queued(db_session) == [("item-1", "star"), ("item-1", "unread")]


class TestMarkAllRead:
    @pytest.mark.asyncio
    async def test_marks_unread_only(
        self, db_session: AsyncSession, user: User, make_article
    ) -> None:
        await make_article("a")
        await make_article("b")
        await make_article("c", is_read=True)

        marked = await article_service.mark_all_read(db_session, user.id)
        await db_session.commit()

        assert marked == 2
        assert sorted(await queued(db_session)) == [("a", "read"), ("b", "read")]
        _, unread_total = await article_service.list_articles(
            db_session, user.id, unread_only=True
        )
        assert unread_total == 0

    @pytest.mark.asyncio
    async def test_scoped_to_tag(
        self, db_session: AsyncSession, user: User, tag: Tag, make_article
    ) -> None:
        tagged = await make_article("tagged")
        untouched = await make_article("untouched")
        db_session.add(ArticleTag(article_id=tagged.id, tag_id=tag.id))
        await db_session.commit()

        marked = await article_service.mark_all_read(db_session, user.id, tag_id=tag.id)

        assert marked == 1
        assert tagged.is_read
        assert not untouched.is_read
