"""Tag queries, edits and sync-time upserts.

Tags come from Inoreader labels that are not folders. The sync upserts them
by (user_id, slug) and links them to articles; the tags API lets the reader
rename, recolor, describe or delete them.

Error Handling:
- Lookups return None for missing or foreign tags; routers turn that into 404
- A rename that collides with another tag's slug raises TagSlugConflictError
"""

import re
from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import Article, ArticleTag, Feed, Tag
from rss_reader_service.utils import chunked, decode_html_entities, slugify

logger = get_logger(__name__)


class TagSlugConflictError(Exception):
    """Another tag of the same user already uses the slug."""

    def __init__(self, slug: str):
        super().__init__(f"A tag with slug '{slug}' already exists")
        self.slug = slug


def rename_slug(name: str) -> str:
    """Slug for a user-chosen tag name: runs of non [a-z0-9] become '-'."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


async def get_tag(db: AsyncSession, user_id: int, tag_id: int) -> Tag | None:
    stmt = select(Tag).where(Tag.id == tag_id, Tag.user_id == user_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def unread_counts_by_tag(db: AsyncSession, user_id: int) -> dict[int, int]:
    """Unread article count per tag id (tags without unread articles omitted)."""
    stmt = (
        select(ArticleTag.tag_id, func.count(ArticleTag.article_id))
        .join(Article, Article.id == ArticleTag.article_id)
        .join(Tag, Tag.id == ArticleTag.tag_id)
        .where(Tag.user_id == user_id, Article.is_read.is_(False))
        .group_by(ArticleTag.tag_id)
    )
    result = await db.execute(stmt)
    return {tag_id: count for tag_id, count in result.all()}


async def list_tags(db: AsyncSession, user_id: int) -> list[tuple[Tag, int]]:
    """All tags of a user ordered by name, paired with their unread counts."""
    result = await db.execute(select(Tag).where(Tag.user_id == user_id).order_by(Tag.name))
    tags = list(result.scalars().all())
    unread = await unread_counts_by_tag(db, user_id)
    return [(tag, unread.get(tag.id, 0)) for tag in tags]


async def tag_articles(db: AsyncSession, tag_id: int, limit: int = 10) -> list[dict[str, Any]]:
    """Most recently tagged articles of a tag with their feed."""
    stmt = (
        select(Article, Feed.id, Feed.title)
        .join(ArticleTag, ArticleTag.article_id == Article.id)
        .join(Feed, Feed.id == Article.feed_id)
        .where(ArticleTag.tag_id == tag_id)
        .order_by(ArticleTag.created_at.desc(), Article.id.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [
        {
            "id": article.id,
            "title": article.title,
            "url": article.url,
            "published_at": article.published_at,
            "is_read": article.is_read,
            "is_starred": article.is_starred,
            "feed": {"id": feed_id, "title": feed_title},
        }
        for article, feed_id, feed_title in result.all()
    ]


async def update_tag(db: AsyncSession, tag: Tag, changes: dict[str, Any]) -> Tag:
    """Apply name/color/description changes.

    A blank name is ignored. A new name re-slugs the tag.

    Raises:
        TagSlugConflictError: If the new slug belongs to another tag
    """
    name = changes.get("name")
    if name is not None and name.strip():
        new_slug = rename_slug(name.strip())
        clash = await db.execute(
            select(Tag.id).where(
                Tag.user_id == tag.user_id,
                Tag.slug == new_slug,
                Tag.id != tag.id,
            )
        )
        if clash.scalar_one_or_none() is not None:
            raise TagSlugConflictError(new_slug)
        tag.name = name.strip()
        tag.slug = new_slug

    if "color" in changes:
        tag.color = changes["color"]
    if "description" in changes:
        tag.description = changes["description"]

    await db.flush()
    return tag


async def delete_tag(db: AsyncSession, tag: Tag) -> None:
    await db.execute(delete(ArticleTag).where(ArticleTag.tag_id == tag.id))
    await db.delete(tag)
    await db.flush()
    logger.info("tag_deleted", tag_id=tag.id, slug=tag.slug)


async def upsert_tags(db: AsyncSession, user_id: int, names: Iterable[str]) -> dict[str, Tag]:
    """Create missing tags for label names, keyed by (user_id, slug).

    Returns:
        Mapping of label name to its Tag row
    """
    names = list(names)
    by_slug: dict[str, str] = {}
    for name in names:
        slug = slugify(name)
        if slug:
            by_slug.setdefault(slug, name)
    if not by_slug:
        return {}

    result = await db.execute(
        select(Tag).where(Tag.user_id == user_id, Tag.slug.in_(list(by_slug)))
    )
    existing = {tag.slug: tag for tag in result.scalars().all()}

    created = 0
    for slug, name in by_slug.items():
        if slug not in existing:
            tag = Tag(user_id=user_id, name=decode_html_entities(name), slug=slug, article_count=0)
            db.add(tag)
            existing[slug] = tag
            created += 1
    await db.flush()

    if created:
        logger.info("tags_created", count=created)

    return {name: existing[slugify(name)] for name in names if slugify(name) in existing}


async def link_article_tags(
    db: AsyncSession,
    pairs: Iterable[tuple[int, int]],
    chunk_size: int | None = None,
) -> int:
    """Create missing (article_id, tag_id) links in chunks.

    Returns:
        Number of links created
    """
    wanted = sorted(set(pairs))
    if not wanted:
        return 0
    size = chunk_size or settings.sync_tag_association_chunk_size

    created = 0
    for chunk in chunked(wanted, size):
        article_ids = {article_id for article_id, _ in chunk}
        result = await db.execute(
            select(ArticleTag.article_id, ArticleTag.tag_id).where(
                ArticleTag.article_id.in_(article_ids)
            )
        )
        existing = set(result.tuples().all())
        for article_id, tag_id in chunk:
            if (article_id, tag_id) not in existing:
                db.add(ArticleTag(article_id=article_id, tag_id=tag_id))
                created += 1
        await db.flush()
    return created


async def refresh_tag_counts(db: AsyncSession, user_id: int) -> None:
    """Recompute ``article_count`` for every tag of a user."""
    counts_result = await db.execute(
        select(ArticleTag.tag_id, func.count(ArticleTag.article_id))
        .join(Tag, Tag.id == ArticleTag.tag_id)
        .where(Tag.user_id == user_id)
        .group_by(ArticleTag.tag_id)
    )
    counts = dict(counts_result.tuples().all())

    tags_result = await db.execute(select(Tag).where(Tag.user_id == user_id))
    for tag in tags_result.scalars().all():
        tag.article_count = counts.get(tag.id, 0)
    await db.flush()
