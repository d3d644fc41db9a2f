"""On-demand full-text fetch for articles.

Design Decisions:

1. Stored once:
   - A successful extraction is kept in ``full_content`` and later
     requests return it without a download

2. Fetch log:
   - Every fetch writes an ``attempt`` row before the download and a
     ``success`` or ``failure`` row after it, with the duration. A missing
     URL is logged as a failure without an attempt.

3. Fallback:
   - A page without readable text is not an error for the reader: the
     feed content is returned with ``fallback`` set. Download errors
     propagate to the router.
"""

import time
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.extraction import (
    EmptyContentError,
    ExtractionError,
    ExtractionPipeline,
    FetchTimeoutError,
)
from rss_reader_service.logging_config import get_logger
from rss_reader_service.models import Article, Feed, FetchLog
from rss_reader_service.schemas.article import FetchContentResponse

logger = get_logger(__name__)


class ArticleHasNoURLError(Exception):
    """The article has no page to fetch."""


async def find_article(db: AsyncSession, user_id: int, identifier: str) -> Article | None:
    """Article by local id, falling back to its upstream id."""
    stmt = (
        select(Article)
        .join(Feed, Feed.id == Article.feed_id)
        .where(Feed.user_id == user_id)
    )
    if identifier.isdigit():
        result = await db.execute(stmt.where(Article.id == int(identifier)))
        article = result.scalar_one_or_none()
        if article is not None:
            return article
    result = await db.execute(stmt.where(Article.inoreader_id == identifier))
    return result.scalar_one_or_none()


async def log_fetch(
    db: AsyncSession,
    article: Article,
    status: str,
    *,
    error_reason: str | None = None,
    error_details: dict[str, Any] | None = None,
    duration_ms: int | None = None,
) -> None:
    db.add(
        FetchLog(
            article_id=article.id,
            feed_id=article.feed_id,
            fetch_type="manual",
            status=status,
            error_reason=error_reason,
            error_details=error_details,
            duration_ms=duration_ms,
        )
    )
    await db.flush()


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def fetch_full_content(
    db: AsyncSession,
    article: Article,
    pipeline: ExtractionPipeline,
) -> FetchContentResponse:
    """Fetch, store and return the readable body of an article's page.

    Raises:
        ArticleHasNoURLError: If the article has no URL
        ExtractionError: If the page could not be downloaded
            (FetchTimeoutError when it timed out)
    """
    started = time.perf_counter()

    if article.has_full_content and article.full_content:
        return FetchContentResponse(content=article.full_content, cached=True)

    if not article.url:
        await log_fetch(
            db, article, "failure", error_reason="no_url", duration_ms=_elapsed_ms(started)
        )
        raise ArticleHasNoURLError(f"Article {article.id} has no URL")

    await log_fetch(db, article, "attempt")
    try:
        result = await pipeline.extract(article.url)
    except EmptyContentError as e:
        await log_fetch(
            db,
            article,
            "failure",
            error_reason="extraction_failed",
            error_details={"message": str(e)},
            duration_ms=_elapsed_ms(started),
        )
        logger.warning("full_content_fallback", article_id=article.id, error=str(e))
        return FetchContentResponse(content=article.content, fallback=True)
    except ExtractionError as e:
        reason = "timeout" if isinstance(e, FetchTimeoutError) else "exception"
        await log_fetch(
            db,
            article,
            "failure",
            error_reason=reason,
            error_details={"message": str(e), "type": type(e).__name__},
            duration_ms=_elapsed_ms(started),
        )
        logger.error(
            "full_content_fetch_failed", article_id=article.id, reason=reason, error=str(e)
        )
        raise

    article.full_content = result.content
    article.has_full_content = True
    await log_fetch(db, article, "success", duration_ms=_elapsed_ms(started))
    logger.info("full_content_stored", article_id=article.id, length=result.text_length)

    return FetchContentResponse(
        content=result.content,
        title=result.title,
        excerpt=result.excerpt,
        byline=result.byline,
        length=result.text_length,
        site_name=result.site_name,
    )
