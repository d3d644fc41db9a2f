"""Tag API endpoints.

Tags are created by the sync from Inoreader labels; these endpoints let the
reader browse, rename, recolor, describe and delete them.

Error Handling:
- 404 when the user does not exist yet or the tag belongs to someone else
- 409 when a rename collides with another tag's slug
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.database import get_db
from rss_reader_service.models import Tag, User
from rss_reader_service.routers.articles import get_current_user
from rss_reader_service.schemas.tag import (
    TagDetailResponse,
    TagListResponse,
    TagResponse,
    TagUpdateRequest,
)
from rss_reader_service.services import tag_service
from rss_reader_service.services.tag_service import TagSlugConflictError

router = APIRouter(prefix="/api/tags", tags=["tags"])


async def _get_tag_or_404(db: AsyncSession, user: User, tag_id: int) -> Tag:
    tag = await tag_service.get_tag(db, user.id, tag_id)
    if tag is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tag not found",
        )
    return tag


async def _unread_count(db: AsyncSession, user: User, tag: Tag) -> int:
    counts = await tag_service.unread_counts_by_tag(db, user.id)
    return counts.get(tag.id, 0)


def _tag_response(tag: Tag, unread: int) -> TagResponse:
    return TagResponse.model_validate(tag).model_copy(update={"unread_count": unread})


@router.get(
    "",
    response_model=TagListResponse,
    summary="List tags with unread counts",
)
async def list_tags(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TagListResponse:
    rows = await tag_service.list_tags(db, user.id)
    return TagListResponse(
        tags=[_tag_response(tag, unread) for tag, unread in rows],
        total=len(rows),
    )


@router.get(
    "/{tag_id}",
    response_model=TagDetailResponse,
    summary="Get a tag, optionally with its latest articles",
)
async def get_tag(
    tag_id: int,
    include_articles: bool = Query(False, description="Include recently tagged articles"),
    limit: int = Query(10, ge=1, le=100, description="Maximum articles to include"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TagDetailResponse:
    tag = await _get_tag_or_404(db, user, tag_id)
    unread = await _unread_count(db, user, tag)
    articles = await tag_service.tag_articles(db, tag.id, limit) if include_articles else None

    return TagDetailResponse(
        **_tag_response(tag, unread).model_dump(),
        articles=articles,
    )


@router.patch(
    "/{tag_id}",
    response_model=TagResponse,
    summary="Rename, recolor or describe a tag",
)
async def update_tag(
    tag_id: int,
    request: TagUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TagResponse:
    tag = await _get_tag_or_404(db, user, tag_id)
    try:
        await tag_service.update_tag(db, tag, request.model_dump(exclude_unset=True))
    except TagSlugConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        ) from e
    await db.commit()

    unread = await _unread_count(db, user, tag)
    return _tag_response(tag, unread)


@router.delete(
    "/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a tag and its article links",
)
async def delete_tag(
    tag_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    tag = await _get_tag_or_404(db, user, tag_id)
    await tag_service.delete_tag(db, tag)
    await db.commit()
