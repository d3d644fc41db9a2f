"""Article listing and local read/star state changes.

Every local state change is stamped with ``last_local_update`` (so the next
sync does not overwrite it) and queued in ``sync_queue`` for the
bidirectional push to Inoreader.
"""

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import Article, ArticleTag, Feed, SyncQueueItem
from rss_reader_service.utils import utc_now

logger = get_logger(__name__)

# Actions that cancel each other out for the same item
_OPPOSITES = {
    "read": "unread",
    "unread": "read",
    "star": "unstar",
    "unstar": "star",
}


def _filtered(
    stmt: Select,
    user_id: int,
    feed_id: int | None,
    tag_id: int | None,
    unread_only: bool,
) -> Select:
    stmt = stmt.join(Feed, Feed.id == Article.feed_id).where(Feed.user_id == user_id)
    if feed_id is not None:
        stmt = stmt.where(Article.feed_id == feed_id)
    if tag_id is not None:
        stmt = stmt.join(ArticleTag, ArticleTag.article_id == Article.id).where(
            ArticleTag.tag_id == tag_id
        )
    if unread_only:
        stmt = stmt.where(Article.is_read.is_(False))
    return stmt


async def list_articles(
    db: AsyncSession,
    user_id: int,
    *,
    feed_id: int | None = None,
    tag_id: int | None = None,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Article], int]:
    """Page of a user's articles, newest first, with the total count."""
    count_stmt = _filtered(
        select(func.count(Article.id)), user_id, feed_id, tag_id, unread_only
    )
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = _filtered(select(Article), user_id, feed_id, tag_id, unread_only)
    stmt = (
        stmt.order_by(Article.published_at.desc().nulls_last(), Article.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def get_article(db: AsyncSession, user_id: int, article_id: int) -> Article | None:
    stmt = (
        select(Article)
        .join(Feed, Feed.id == Article.feed_id)
        .where(Article.id == article_id, Feed.user_id == user_id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def enqueue_action(db: AsyncSession, article: Article, action: str) -> SyncQueueItem:
    """Queue an upstream state change, replacing pending ones for the same flag."""
    await db.execute(
        delete(SyncQueueItem).where(
            SyncQueueItem.inoreader_id == article.inoreader_id,
            SyncQueueItem.action_type.in_([action, _OPPOSITES[action]]),
        )
    )
    item = SyncQueueItem(
        article_id=article.id,
        inoreader_id=article.inoreader_id,
        action_type=action,
        sync_attempts=0,
    )
    db.add(item)
    return item


async def update_article_state(
    db: AsyncSession,
    article: Article,
    *,
    is_read: bool | None = None,
    is_starred: bool | None = None,
) -> list[str]:
    """Change read/starred state locally and queue the upstream push.

    Returns:
        Queued action types (empty when nothing changed)
    """
    actions: list[str] = []
    if is_read is not None and is_read != article.is_read:
        article.is_read = is_read
        actions.append("read" if is_read else "unread")
    if is_starred is not None and is_starred != article.is_starred:
        article.is_starred = is_starred
        actions.append("star" if is_starred else "unstar")

    if not actions:
        return actions

    article.last_local_update = utc_now()
    for action in actions:
        await enqueue_action(db, article, action)
    await db.flush()

    logger.info("article_state_changed", article_id=article.id, actions=actions)
    return actions


async def mark_all_read(
    db: AsyncSession,
    user_id: int,
    *,
    feed_id: int | None = None,
    tag_id: int | None = None,
) -> int:
    """Mark every unread article of a feed, a tag or the whole user as read.

    Returns:
        Number of articles changed
    """
    stmt = _filtered(select(Article), user_id, feed_id, tag_id, unread_only=True)
    result = await db.execute(stmt)
    articles: Sequence[Article] = result.scalars().all()

    now = utc_now()
    for article in articles:
        article.is_read = True
        article.last_local_update = now
        await enqueue_action(db, article, "read")
    await db.flush()

    logger.info("articles_marked_read", count=len(articles), feed_id=feed_id, tag_id=tag_id)
    return len(articles)
