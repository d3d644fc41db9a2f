"""Server-side sync from Inoreader into the local database.

One run mirrors the reader's Inoreader account: subscriptions become feeds
and folders, the newest unread items become articles, item labels that are
not folders become tags. The run reports progress through its
``sync_status`` row so the UI can poll it.

Flow (progress percentage in brackets):

1. [10-40] Fetch subscriptions, tag list and unread counts. Folder names are
   the labels of subscription categories; every other label is a tag.
2. [40-60] Get or create the single user, upsert folders and feeds, remove
   feeds no longer subscribed upstream.
3. [60-70] Fetch the stream. ``ot=`` (newer than the last run) is sent
   unless there was no previous run or it is older than the full sync
   interval; ``xt=read`` is always sent.
4. [70-90] Reconciliation filter against tombstones, conflict-aware upsert
   in chunks, tags and article-tag links.
5. [90-99] Sync metadata, API usage, conflict log, read-article cleanup,
   retention limit, push of queued local changes.
6. [100] Sidebar data (unread counts per feed and per tag) and metrics.

Design Decisions:

1. One session, committed per step:
   - Progress updates commit, which also commits the step's work
   - A failure leaves completed steps in place (the next run repairs the
     rest), and the status row records the error

2. Rate limit handling:
   - A 429 at any upstream step ends the run with status ``failed`` and a
     "Rate limit exceeded" message; nothing after that step runs

3. Best-effort tail:
   - Conflict log, cleanup, retention and the push never fail the sync;
     their errors are logged
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rss_reader_service.config import settings
from rss_reader_service.database import AsyncSessionLocal
from rss_reader_service.inoreader import (
    InoreaderAPIError,
    InoreaderClient,
    InoreaderRateLimitError,
    RateLimitCallback,
    RateLimitSnapshot,
    StreamItem,
    Subscription,
    TagItem,
    is_label,
    label_name,
)
from rss_reader_service.logging_config import (
    bind_sync_context,
    clear_sync_context,
    get_logger,
)
from rss_reader_service.models import Article, Feed, Folder, SyncQueueItem, Tag, User
from rss_reader_service.services import sync_status_service as status_service
from rss_reader_service.services.api_usage_service import record_rate_limit_snapshot, track_usage
from rss_reader_service.services.cleanup_service import ArticleCleanupService
from rss_reader_service.services.tag_service import (
    link_article_tags,
    refresh_tag_counts,
    unread_counts_by_tag,
    upsert_tags,
)
from rss_reader_service.utils import chunked, decode_html_entities, utc_now

from .bidirectional import BiDirectionalSyncService
from .conflict_detector import SyncConflictDetector, local_changes_win
from .reconciliation import is_read_upstream, is_starred_upstream, reconcile_batch

logger = get_logger(__name__)

ClientFactory = Callable[[RateLimitCallback | None], InoreaderClient]


def _default_client_factory(on_rate_limit: RateLimitCallback | None) -> InoreaderClient:
    return InoreaderClient.from_settings(on_rate_limit=on_rate_limit)


class SyncAborted(Exception):
    """Raised inside the run to stop it with a specific failure message."""


@dataclass
class SyncMetrics:
    new_articles: int = 0
    updated_articles: int = 0
    skipped_articles: int = 0
    deleted_articles: int = 0
    new_tags: int = 0
    failed_feeds: int = 0
    conflicts: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


@dataclass
class UpstreamSnapshot:
    subscriptions: list[Subscription]
    folder_names: set[str]
    tag_names: set[str]
    unread_counts: dict[str, int] = field(default_factory=dict)


def split_labels(
    subscriptions: list[Subscription],
    tags: list[TagItem],
) -> tuple[set[str], set[str]]:
    """Separate folder names from tag names.

    Inoreader's tag list does not reliably say which labels are folders, so
    folders are taken from subscription categories and every other label
    counts as a tag.
    """
    folder_names = {
        category.label
        for subscription in subscriptions
        for category in subscription.categories
        if category.label
    }
    labels = {label_name(tag.id) for tag in tags if is_label(tag.id)}
    return folder_names, labels - folder_names


def should_full_sync(last_timestamp: int | None, now_timestamp: int) -> bool:
    """Full sync when there is no previous run or it is too old."""
    if last_timestamp is None:
        return True
    return now_timestamp - last_timestamp > settings.full_sync_interval_days * 24 * 60 * 60


class ServerSync:
    """One server sync run bound to a status row."""

    def __init__(
        self,
        sync_id: str,
        db: AsyncSession,
        client: InoreaderClient,
        push_service: BiDirectionalSyncService | None = None,
    ):
        self.sync_id = sync_id
        self.db = db
        self.client = client
        self.push_service = push_service
        self.metrics = SyncMetrics()
        self.conflicts = SyncConflictDetector(sync_id)
        self.cleanup = ArticleCleanupService(db)

    async def progress(self, percentage: int, message: str, **fields: Any) -> None:
        await status_service.update_sync_status(
            self.db,
            self.sync_id,
            status=fields.pop("status", "running"),
            progress_percentage=percentage,
            current_step=message,
            **fields,
        )

    async def run(self) -> None:
        started = utc_now()
        now_timestamp = int(started.timestamp())

        await self.progress(10, "Fetching subscriptions...")
        upstream = await self.fetch_upstream()

        await self.progress(40, f"Syncing {len(upstream.subscriptions)} feeds...")
        user = await self.get_or_create_user()
        feed_ids = await self.store_feeds(user, upstream)
        feed_cleanup = await self.cleanup.cleanup_deleted_feeds(
            [subscription.id for subscription in upstream.subscriptions], user.id
        )
        self.metrics.deleted_articles += feed_cleanup.articles_deleted
        subscribed = {subscription.id for subscription in upstream.subscriptions}
        feed_ids = {key: value for key, value in feed_ids.items() if key in subscribed}

        await self.progress(60, "Fetching recent articles...")
        items = await self.fetch_items(now_timestamp)

        await self.progress(70, f"Processing {len(items)} articles...")
        stored = await self.store_articles(items, feed_ids)
        await self.store_tags(user, items, stored, upstream.tag_names)

        await self.progress(90, "Updating sync metadata...")
        await status_service.set_metadata(
            self.db, status_service.LAST_SYNC_TIME_KEY, utc_now().isoformat()
        )
        await status_service.set_metadata(
            self.db, status_service.LAST_INCREMENTAL_SYNC_KEY, str(now_timestamp)
        )
        await track_usage(self.db, increment=settings.sync_api_calls_per_run)

        await self.progress(95, "Logging sync conflicts...")
        self.metrics.conflicts = self.conflicts.summary.total_conflicts
        if self.metrics.conflicts:
            self.conflicts.write_conflicts()
            logger.info("sync_conflicts", report=self.conflicts.generate_report())

        await self.progress(97, "Cleaning up read articles...")
        await self.run_cleanup(user)

        await self.progress(99, "Syncing local changes to Inoreader...")
        await self.push_local_changes()

        sidebar = await self.gather_sidebar(user)
        conflict_note = (
            f" Detected {self.metrics.conflicts} conflicts." if self.metrics.conflicts else ""
        )
        message = (
            f"Sync completed. Synced {len(upstream.subscriptions)} feeds "
            f"and {len(items)} articles.{conflict_note}"
        )
        await status_service.set_metadata(self.db, status_service.LAST_SYNC_STATUS_KEY, "completed")
        await self.progress(
            100,
            message,
            status="completed",
            metrics=self.metrics.as_dict(),
            sidebar=sidebar,
        )
        logger.info("sync_completed", **self.metrics.as_dict())

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def fetch_upstream(self) -> UpstreamSnapshot:
        subscriptions = await self._upstream(
            self.client.list_subscriptions(), "Rate limit exceeded - sync incomplete"
        )
        await self.progress(20, f"Found {len(subscriptions)} feeds...")

        try:
            tags = await self._upstream(
                self.client.list_tags(),
                "Rate limit exceeded - sync incomplete after fetching subscriptions",
            )
        except InoreaderAPIError as e:
            # Tags are optional; the rest of the sync still runs
            logger.error("tag_list_failed", error=str(e))
            tags = []
        folder_names, tag_names = split_labels(subscriptions, tags)
        logger.info("labels_split", folders=len(folder_names), tags=len(tag_names))

        await self.progress(30, "Fetching unread counts...")
        counts = await self._upstream(
            self.client.unread_counts(),
            "Rate limit exceeded - sync incomplete after fetching tags",
        )
        return UpstreamSnapshot(
            subscriptions=subscriptions,
            folder_names=folder_names,
            tag_names=tag_names,
            unread_counts={count.id: count.count for count in counts},
        )

    async def get_or_create_user(self) -> User:
        inoreader_id = settings.default_inoreader_id
        result = await self.db.execute(select(User).where(User.inoreader_id == inoreader_id))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(email=f"{inoreader_id}@local", inoreader_id=inoreader_id, preferences={})
            self.db.add(user)
            await self.db.flush()
            logger.info("user_created", user_id=user.id)
        return user

    async def store_feeds(self, user: User, upstream: UpstreamSnapshot) -> dict[str, int]:
        """Upsert folders and feeds.

        Returns:
            Mapping of upstream feed id to local feed id for every feed of
            the user
        """
        categories = {
            category.id: category.label
            for subscription in upstream.subscriptions
            for category in subscription.categories
        }
        if categories:
            result = await self.db.execute(
                select(Folder).where(Folder.inoreader_id.in_(list(categories)))
            )
            folders = {folder.inoreader_id: folder for folder in result.scalars().all()}
            for category_id, label in categories.items():
                folder = folders.get(category_id)
                if folder is None:
                    self.db.add(Folder(user_id=user.id, inoreader_id=category_id, name=label))
                else:
                    folder.name = label

        result = await self.db.execute(select(Feed).where(Feed.user_id == user.id))
        feeds = {feed.inoreader_id: feed for feed in result.scalars().all()}
        for subscription in upstream.subscriptions:
            values = {
                "title": decode_html_entities(subscription.title) or subscription.id,
                "url": subscription.url or subscription.html_url,
                "folder_id": subscription.categories[0].id if subscription.categories else None,
                "unread_count": upstream.unread_counts.get(subscription.id, 0),
            }
            feed = feeds.get(subscription.id)
            if feed is None:
                feed = Feed(user_id=user.id, inoreader_id=subscription.id, **values)
                self.db.add(feed)
                feeds[subscription.id] = feed
            else:
                for name, value in values.items():
                    setattr(feed, name, value)
        await self.db.flush()
        return {inoreader_id: feed.id for inoreader_id, feed in feeds.items()}

    async def fetch_items(self, now_timestamp: int) -> list[StreamItem]:
        raw_last = await status_service.get_metadata(
            self.db, status_service.LAST_INCREMENTAL_SYNC_KEY
        )
        last_timestamp = int(raw_last) if raw_last and raw_last.isdigit() else None
        full_sync = should_full_sync(last_timestamp, now_timestamp)
        logger.info(
            "stream_fetch",
            mode="full" if full_sync else "incremental",
            newer_than=None if full_sync else last_timestamp,
        )
        contents = await self._upstream(
            self.client.stream_contents(
                settings.sync_max_articles,
                exclude_read=True,
                newer_than=None if full_sync else last_timestamp,
            ),
            "Rate limit exceeded - sync incomplete after fetching unread counts",
        )
        return contents.items

    async def store_articles(
        self,
        items: list[StreamItem],
        feed_ids: dict[str, int],
    ) -> dict[str, int]:
        """Filter, resolve conflicts and upsert articles.

        Returns:
            Mapping of upstream item id to local article id for stored items
        """
        if not items or not feed_ids:
            return {}

        tombstoned = await self.cleanup.tombstoned_ids([item.id for item in items])
        batch = reconcile_batch(items, tombstoned, known_feed_ids=feed_ids.keys())
        self.metrics.skipped_articles = len(batch.skipped)
        # Items whose feed could not be stored locally
        self.metrics.failed_feeds = len({item.feed_stream_id for item in batch.orphaned})
        if batch.skipped or batch.orphaned:
            logger.info(
                "articles_filtered",
                skipped=len(batch.skipped),
                orphaned=len(batch.orphaned),
                resurrected=len(batch.resurrected),
            )
        if batch.resurrected:
            await self.cleanup.remove_tombstones(batch.resurrected_ids)

        now = utc_now()
        stored: dict[str, int] = {}
        remote_applied: list[str] = []
        admitted = batch.admitted
        chunk_size = settings.sync_upsert_chunk_size

        for index, chunk in enumerate(chunked(admitted, chunk_size)):
            result = await self.db.execute(
                select(Article).where(Article.inoreader_id.in_([item.id for item in chunk]))
            )
            existing = {article.inoreader_id: article for article in result.scalars().all()}

            for item in chunk:
                remote_read = is_read_upstream(item)
                remote_starred = is_starred_upstream(item)
                values = {
                    "feed_id": feed_ids[item.feed_stream_id],
                    "title": decode_html_entities(item.title) or "Untitled",
                    "author": item.author,
                    "content": decode_html_entities(item.body),
                    "url": item.link,
                    "published_at": item.published_at,
                    "last_sync_update": now,
                }
                article = existing.get(item.id)
                if article is None:
                    article = Article(
                        inoreader_id=item.id,
                        is_read=remote_read,
                        is_starred=remote_starred,
                        **values,
                    )
                    self.db.add(article)
                    existing[item.id] = article
                    self.metrics.new_articles += 1
                    remote_applied.append(item.id)
                else:
                    if local_changes_win(article):
                        self.conflicts.detect_conflict(
                            article, remote_read, remote_starred, "local"
                        )
                    else:
                        self.conflicts.detect_conflict(
                            article, remote_read, remote_starred, "remote"
                        )
                        article.is_read = remote_read
                        article.is_starred = remote_starred
                        remote_applied.append(item.id)
                    for name, value in values.items():
                        setattr(article, name, value)
                    self.metrics.updated_articles += 1

            await self.db.flush()
            stored.update({inoreader_id: article.id for inoreader_id, article in existing.items()})

            done = min((index + 1) * chunk_size, len(admitted))
            await self.progress(70 + int(done / len(admitted) * 20), f"Stored {done} articles...")

        if remote_applied:
            # Upstream state won for these; queued local changes are stale
            for ids in chunked(remote_applied, settings.max_ids_per_delete_operation):
                await self.db.execute(
                    delete(SyncQueueItem).where(SyncQueueItem.inoreader_id.in_(ids))
                )
            await self.db.flush()

        return stored

    async def store_tags(
        self,
        user: User,
        items: list[StreamItem],
        stored: dict[str, int],
        tag_names: set[str],
    ) -> None:
        if not tag_names or not stored:
            return

        links: list[tuple[str, str]] = []
        for item in items:
            if item.id not in stored:
                continue
            for category in item.categories:
                if is_label(category):
                    name = label_name(category)
                    if name in tag_names:
                        links.append((item.id, name))
        if not links:
            return

        names = sorted({name for _, name in links})
        known = set((await self.db.execute(select(Tag.id).where(Tag.user_id == user.id))).scalars())
        tags = await upsert_tags(self.db, user.id, names)
        self.metrics.new_tags += len({tag.id for tag in tags.values()} - known)

        created = await link_article_tags(
            self.db,
            ((stored[item_id], tags[name].id) for item_id, name in links if name in tags),
        )
        await refresh_tag_counts(self.db, user.id)
        logger.info("tags_synced", tags=len(tags), links_created=created)

    async def run_cleanup(self, user: User) -> None:
        try:
            cleanup = await self.cleanup.cleanup_read_articles()
            retention = await self.cleanup.enforce_retention_limit(
                user.id, settings.articles_retention_limit
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("sync_cleanup_failed", error=str(e))
            return

        self.metrics.deleted_articles += cleanup.read_articles_deleted + retention.deleted_count
        if cleanup.errors:
            logger.error("sync_cleanup_errors", errors=cleanup.errors)

    async def push_local_changes(self) -> None:
        if self.push_service is None:
            return
        await self.db.commit()
        try:
            result = await self.push_service.process_sync_queue(force=True)
        except Exception as e:
            logger.error("push_after_sync_failed", error=str(e))
            return
        logger.info("push_after_sync", synced=result.synced, failed=result.failed)

    async def gather_sidebar(self, user: User) -> dict[str, Any]:
        """Unread counts per feed and per tag for an immediate UI refresh."""
        feed_rows = await self.db.execute(
            select(Feed.id, func.count(Article.id))
            .outerjoin(Article, (Article.feed_id == Feed.id) & Article.is_read.is_(False))
            .where(Feed.user_id == user.id)
            .group_by(Feed.id)
            .order_by(Feed.id)
        )
        feed_counts = [[feed_id, count] for feed_id, count in feed_rows.all()]

        tag_unread = await unread_counts_by_tag(self.db, user.id)
        tag_rows = await self.db.execute(
            select(Tag.id, Tag.name).where(Tag.id.in_(list(tag_unread))).order_by(Tag.name)
        )
        tags = [
            {"id": tag_id, "name": decode_html_entities(name), "count": tag_unread[tag_id]}
            for tag_id, name in tag_rows.all()
        ]
        return {"feed_counts": feed_counts, "tags": tags}

    async def _upstream(self, call: Any, rate_limit_message: str) -> Any:
        try:
            return await call
        except InoreaderRateLimitError as e:
            logger.error("sync_rate_limited", retry_after=e.retry_after)
            raise SyncAborted(rate_limit_message) from e


async def perform_server_sync(
    sync_id: str,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    client_factory: ClientFactory = _default_client_factory,
    push_service: BiDirectionalSyncService | None = None,
) -> None:
    """Run one server sync and record its outcome on the status row.

    Never raises: failures end up in ``sync_status.error_message``.
    """
    bind_sync_context(sync_id)
    try:
        await _run_and_record(sync_id, session_factory, client_factory, push_service)
    finally:
        clear_sync_context()


async def _run_and_record(
    sync_id: str,
    session_factory: async_sessionmaker[AsyncSession],
    client_factory: ClientFactory,
    push_service: BiDirectionalSyncService | None,
) -> None:
    async with session_factory() as db:

        async def on_rate_limit(snapshot: RateLimitSnapshot) -> None:
            await record_rate_limit_snapshot(db, snapshot)

        try:
            async with client_factory(on_rate_limit) as client:
                await ServerSync(sync_id, db, client, push_service).run()
        except Exception as e:
            await db.rollback()
            message = str(e) or type(e).__name__
            logger.error("sync_failed", error=message)
            await status_service.set_metadata(db, status_service.LAST_SYNC_STATUS_KEY, "failed")
            await status_service.update_sync_status(
                db,
                sync_id,
                status="failed",
                error_message=message,
            )
