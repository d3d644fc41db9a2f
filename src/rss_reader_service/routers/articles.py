"""Article API endpoints.

Local read/star changes are applied immediately and queued for the push to
Inoreader; the next server sync keeps them when they are newer than what it
last wrote.

Full text is fetched only when the reader asks for it; see
``content_service``.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.database import get_db
from rss_reader_service.extraction import (
    ExtractionError,
    ExtractionPipeline,
    FetchTimeoutError,
    get_extraction_pipeline,
)
from rss_reader_service.models import User
from rss_reader_service.schemas.article import (
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdateRequest,
    FetchContentResponse,
    MarkAllReadRequest,
    MarkAllReadResponse,
)
from rss_reader_service.services import article_service, content_service
from rss_reader_service.services.preferences_service import get_user

router = APIRouter(prefix="/api/articles", tags=["articles"])


async def get_current_user(db: AsyncSession = Depends(get_db)) -> User:
    """The single configured reader; 404 until the first sync created it."""
    user = await get_user(db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


@router.get(
    "",
    response_model=ArticleListResponse,
    summary="List articles",
)
async def list_articles(
    feed_id: int | None = Query(None, description="Only articles of this feed"),
    tag_id: int | None = Query(None, description="Only articles carrying this tag"),
    unread_only: bool = Query(False, description="Only unread articles"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ArticleListResponse:
    articles, total = await article_service.list_articles(
        db,
        user.id,
        feed_id=feed_id,
        tag_id=tag_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return ArticleListResponse(
        items=[ArticleResponse.model_validate(article) for article in articles],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.patch(
    "/{article_id}",
    response_model=ArticleResponse,
    summary="Change read or starred state",
)
async def update_article(
    article_id: int,
    request: ArticleUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ArticleResponse:
    article = await article_service.get_article(db, user.id, article_id)
    if article is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Article not found",
        )

    await article_service.update_article_state(
        db,
        article,
        is_read=request.is_read,
        is_starred=request.is_starred,
    )
    await db.commit()
    return ArticleResponse.model_validate(article)


@router.post(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    summary="Mark every unread article of a feed, a tag or the whole account as read",
)
async def mark_all_read(
    request: MarkAllReadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    marked = await article_service.mark_all_read(
        db,
        user.id,
        feed_id=request.feed_id,
        tag_id=request.tag_id,
    )
    await db.commit()
    return MarkAllReadResponse(marked=marked)


@router.post(
    "/{article_id:path}/fetch-content",
    response_model=FetchContentResponse,
    summary="Fetch the full text of an article from its page",
    responses={
        400: {"description": "Article has no URL"},
        404: {"description": "Article not found"},
        408: {"description": "Page download timed out"},
        500: {"description": "Page download failed"},
    },
)
async def fetch_content(
    article_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pipeline: ExtractionPipeline = Depends(get_extraction_pipeline),
) -> FetchContentResponse:
    """Extract the readable body of the article's page and store it.

    ``article_id`` is the local id or the Inoreader item id. Fetch log rows
    are committed on failure too.
    """
    article = await content_service.find_article(db, user.id, article_id)
    if article is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Article not found",
        )

    try:
        result = await content_service.fetch_full_content(db, article, pipeline)
    except content_service.ArticleHasNoURLError as e:
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "no_url", "message": "Article has no URL to fetch"},
        ) from e
    except FetchTimeoutError as e:
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            detail={"error": "timeout", "message": "Request timed out while fetching article"},
        ) from e
    except ExtractionError as e:
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "extraction_failed", "message": str(e)},
        ) from e

    await db.commit()
    return result
