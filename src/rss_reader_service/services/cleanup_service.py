"""Article and feed cleanup with deletion tracking.

Design Decisions:

1. Tombstones before deletes:
   - Every read article removed by cleanup gets a ``deleted_articles`` row
     first, so the next sync does not import it again
   - Duplicate tombstones are ignored (the article may have been deleted,
     resurrected and deleted again)

2. Chunked deletes:
   - Deletes run in chunks of ``max_ids_per_delete_operation`` ids with a
     short pause between chunks to keep statements and locks small
   - A failing chunk is recorded in ``errors`` and the remaining chunks
     still run

3. Feed deletion safety threshold:
   - If more than ``feed_deletion_safety_threshold`` of local feeds are
     missing upstream, nothing is deleted. A partial or broken subscription
     response must not wipe the local store.

4. Explicit child deletes:
   - Article-tag links are removed before articles and articles before
     feeds, so cleanup does not depend on ON DELETE CASCADE being enforced

5. Flush, not commit:
   - The service works inside the caller's session; the sync job commits
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import Article, ArticleTag, DeletedArticle, Feed
from rss_reader_service.utils import chunked, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class CleanupConfig:
    deletion_tracking_enabled: bool = True
    cleanup_read_articles_enabled: bool = True
    feed_deletion_safety_threshold: float = 0.5
    max_articles_per_cleanup_batch: int = 1000
    deletion_tracking_retention_days: int = 90
    max_ids_per_delete_operation: int = 200
    delete_chunk_delay_seconds: float = 0.1

    @classmethod
    def from_settings(cls) -> "CleanupConfig":
        return cls(
            deletion_tracking_enabled=settings.deletion_tracking_enabled,
            cleanup_read_articles_enabled=settings.cleanup_read_articles_enabled,
            feed_deletion_safety_threshold=settings.feed_deletion_safety_threshold,
            max_articles_per_cleanup_batch=settings.max_articles_per_cleanup_batch,
            deletion_tracking_retention_days=settings.deletion_tracking_retention_days,
            max_ids_per_delete_operation=settings.max_ids_per_delete_operation,
            delete_chunk_delay_seconds=settings.delete_chunk_delay_seconds,
        )


@dataclass
class FeedCleanupResult:
    feeds_deleted: int = 0
    articles_deleted: int = 0


@dataclass
class RetentionResult:
    deleted_count: int = 0
    chunks_processed: int = 0


@dataclass
class CleanupResult:
    feeds_deleted: int = 0
    articles_deleted: int = 0
    read_articles_deleted: int = 0
    tracking_entries_created: int = 0
    errors: list[str] = field(default_factory=list)


class ArticleCleanupService:
    """Removes stale feeds and read articles for one sync run."""

    def __init__(self, db: AsyncSession, config: CleanupConfig | None = None):
        self.db = db
        self.config = config or CleanupConfig.from_settings()

    async def cleanup_deleted_feeds(
        self,
        upstream_feed_ids: Sequence[str],
        user_id: int,
    ) -> FeedCleanupResult:
        """Delete local feeds that are no longer subscribed upstream."""
        result = await self.db.execute(
            select(Feed.id, Feed.inoreader_id).where(Feed.user_id == user_id)
        )
        local_feeds = result.all()
        if not local_feeds:
            return FeedCleanupResult()

        upstream = set(upstream_feed_ids)
        doomed_ids = [
            feed_id for feed_id, inoreader_id in local_feeds if inoreader_id not in upstream
        ]
        if not doomed_ids:
            return FeedCleanupResult()

        ratio = len(doomed_ids) / len(local_feeds)
        if ratio > self.config.feed_deletion_safety_threshold:
            logger.warning(
                "feed_deletion_safety_triggered",
                would_delete=len(doomed_ids),
                local_feeds=len(local_feeds),
                ratio=round(ratio, 3),
                threshold=self.config.feed_deletion_safety_threshold,
            )
            return FeedCleanupResult()

        count_result = await self.db.execute(
            select(func.count()).select_from(Article).where(Article.feed_id.in_(doomed_ids))
        )
        articles_deleted = count_result.scalar_one()

        article_ids = select(Article.id).where(Article.feed_id.in_(doomed_ids))
        await self.db.execute(delete(ArticleTag).where(ArticleTag.article_id.in_(article_ids)))
        await self.db.execute(delete(Article).where(Article.feed_id.in_(doomed_ids)))
        await self.db.execute(delete(Feed).where(Feed.id.in_(doomed_ids)))
        await self.db.flush()

        logger.info(
            "deleted_feeds_cleaned",
            feeds_deleted=len(doomed_ids),
            articles_deleted=articles_deleted,
        )
        return FeedCleanupResult(feeds_deleted=len(doomed_ids), articles_deleted=articles_deleted)

    async def cleanup_read_articles(self) -> CleanupResult:
        """Tombstone and delete read, unstarred articles.

        Requires both read-article cleanup and deletion tracking to be
        enabled; deleting without tombstones would make the next sync
        re-import everything.
        """
        result = CleanupResult()

        if not self.config.cleanup_read_articles_enabled:
            logger.info("read_article_cleanup_disabled")
            return result
        if not self.config.deletion_tracking_enabled:
            logger.info("read_article_cleanup_skipped", reason="deletion tracking disabled")
            return result

        rows = await self.db.execute(
            select(Article.id, Article.inoreader_id, Article.feed_id)
            .where(Article.is_read.is_(True), Article.is_starred.is_(False))
            .order_by(Article.id)
            .limit(self.config.max_articles_per_cleanup_batch)
        )
        candidates = rows.all()
        if not candidates:
            logger.info("read_article_cleanup_nothing_to_do")
            return result

        try:
            result.tracking_entries_created = await self._add_tombstones(candidates)
        except SQLAlchemyError as e:
            # Deletion continues; tombstones are best effort here
            result.errors.append(f"Failed to track deletions: {e}")
            logger.error("deletion_tracking_failed", error=str(e))

        deleted, _, errors = await self._delete_in_chunks([row.id for row in candidates])
        result.read_articles_deleted = deleted
        if errors:
            result.errors.append(f"Failed to delete some article chunks: {'; '.join(errors)}")

        logger.info(
            "read_articles_cleaned",
            deleted=deleted,
            tracked=result.tracking_entries_created,
        )

        await self.cleanup_old_tracking_entries(self.config.deletion_tracking_retention_days)
        return result

    async def cleanup_old_tracking_entries(self, retention_days: int) -> int:
        """Purge tombstones older than ``retention_days``.

        Returns:
            Number of tombstones removed (0 on failure)
        """
        cutoff = utc_now() - timedelta(days=retention_days)
        try:
            outcome = await self.db.execute(
                delete(DeletedArticle).where(DeletedArticle.deleted_at < cutoff)
            )
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error("tracking_cleanup_failed", error=str(e))
            return 0
        removed = outcome.rowcount or 0
        logger.info("tracking_entries_cleaned", removed=removed, retention_days=retention_days)
        return removed

    async def tombstoned_ids(self, upstream_ids: Sequence[str]) -> set[str]:
        """Subset of ``upstream_ids`` that have a tombstone."""
        if not upstream_ids:
            return set()
        found: set[str] = set()
        for chunk in chunked(list(upstream_ids), self.config.max_ids_per_delete_operation):
            rows = await self.db.execute(
                select(DeletedArticle.inoreader_id).where(DeletedArticle.inoreader_id.in_(chunk))
            )
            found.update(rows.scalars().all())
        return found

    async def remove_tombstones(self, upstream_ids: Sequence[str]) -> int:
        """Delete tombstones for articles that came back unread upstream."""
        if not upstream_ids:
            return 0
        removed = 0
        for chunk in chunked(list(upstream_ids), self.config.max_ids_per_delete_operation):
            outcome = await self.db.execute(
                delete(DeletedArticle).where(DeletedArticle.inoreader_id.in_(chunk))
            )
            removed += outcome.rowcount or 0
        await self.db.flush()
        logger.info("tombstones_removed", count=removed)
        return removed

    async def enforce_retention_limit(self, user_id: int, limit: int) -> RetentionResult:
        """Keep at most ``limit`` articles for a user.

        Oldest read, unstarred articles go first; when there are none, the
        oldest unstarred articles are taken instead. Starred articles are
        never removed.
        """
        user_articles = (
            select(Article.id, Article.inoreader_id, Article.feed_id)
            .join(Feed, Article.feed_id == Feed.id)
            .where(Feed.user_id == user_id, Article.is_starred.is_(False))
            .order_by(Article.published_at.asc(), Article.id.asc())
        )

        count_result = await self.db.execute(
            select(func.count())
            .select_from(Article)
            .join(Feed, Article.feed_id == Feed.id)
            .where(Feed.user_id == user_id)
        )
        current = count_result.scalar_one()
        if current <= limit:
            logger.info("retention_within_limit", count=current, limit=limit)
            return RetentionResult()

        excess = current - limit
        logger.info("retention_limit_exceeded", count=current, limit=limit, to_delete=excess)

        rows = await self.db.execute(
            user_articles.where(Article.is_read.is_(True)).limit(excess)
        )
        victims = rows.all()
        if not victims:
            rows = await self.db.execute(user_articles.limit(excess))
            victims = rows.all()
        if not victims:
            return RetentionResult()

        if self.config.deletion_tracking_enabled:
            await self._add_tombstones(victims)

        deleted, chunks, _ = await self._delete_in_chunks([row.id for row in victims])
        logger.info("retention_enforced", deleted=deleted, chunks=chunks)
        return RetentionResult(deleted_count=deleted, chunks_processed=chunks)

    async def execute_full_cleanup(
        self,
        upstream_feed_ids: Sequence[str],
        user_id: int,
    ) -> CleanupResult:
        """Deleted-feed cleanup followed by read-article cleanup."""
        result = CleanupResult()
        try:
            feeds = await self.cleanup_deleted_feeds(upstream_feed_ids, user_id)
            result.feeds_deleted = feeds.feeds_deleted
            result.articles_deleted = feeds.articles_deleted

            articles = await self.cleanup_read_articles()
            result.read_articles_deleted = articles.read_articles_deleted
            result.tracking_entries_created = articles.tracking_entries_created
            result.errors.extend(articles.errors)
        except SQLAlchemyError as e:
            result.errors.append(f"Full cleanup failed: {e}")
            logger.error("full_cleanup_failed", error=str(e))
        return result

    async def _add_tombstones(self, rows: Sequence) -> int:
        """Insert tombstones for (id, inoreader_id, feed_id) rows, skipping existing."""
        ids = [row.inoreader_id for row in rows]
        existing = await self.tombstoned_ids(ids)
        now = utc_now()
        created = 0
        seen: set[str] = set(existing)
        for row in rows:
            if row.inoreader_id in seen:
                continue
            seen.add(row.inoreader_id)
            self.db.add(
                DeletedArticle(
                    inoreader_id=row.inoreader_id,
                    was_read=True,
                    feed_id=row.feed_id,
                    deleted_at=now,
                )
            )
            created += 1
        await self.db.flush()
        return created

    async def _delete_in_chunks(self, article_ids: list[int]) -> tuple[int, int, list[str]]:
        """Delete articles (and their tag links) chunk by chunk.

        Returns:
            (deleted count, chunks processed, per-chunk error messages)
        """
        size = self.config.max_ids_per_delete_operation
        total_chunks = (len(article_ids) + size - 1) // size
        deleted = 0
        errors: list[str] = []

        for number, chunk in enumerate(chunked(article_ids, size), start=1):
            logger.debug(
                "deleting_article_chunk", chunk=number, total=total_chunks, size=len(chunk)
            )
            try:
                await self.db.execute(delete(ArticleTag).where(ArticleTag.article_id.in_(chunk)))
                await self.db.execute(delete(Article).where(Article.id.in_(chunk)))
                await self.db.flush()
            except SQLAlchemyError as e:
                errors.append(f"Chunk {number}: {e}")
                logger.error("article_chunk_delete_failed", chunk=number, error=str(e))
            else:
                deleted += len(chunk)

            if number < total_chunks and self.config.delete_chunk_delay_seconds > 0:
                await asyncio.sleep(self.config.delete_chunk_delay_seconds)

        return deleted, total_chunks, errors
