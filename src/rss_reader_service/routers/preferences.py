"""User preferences endpoints.

Design Decisions:

1. Raw body handling on PUT:
   - The body is read as bytes so oversized payloads are rejected (413)
     before any parsing
   - JSON and value errors both answer 400 with a message the UI shows as
     is, instead of FastAPI's 422 validation envelope

2. Deep merge:
   - Only the sections and keys sent are changed; everything else keeps
     its stored value, and defaults fill what was never stored

3. Caching:
   - GET responses come from a small TTL cache keyed by user; PUT
     invalidates the entry
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.config import settings
from rss_reader_service.database import get_db
from rss_reader_service.logging_config import get_logger
from rss_reader_service.schemas.preferences import PreferencesResponse, PreferencesUpdate
from rss_reader_service.services import preferences_service

logger = get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["preferences"])


@router.get(
    "/preferences",
    response_model=PreferencesResponse,
    summary="Get effective user preferences",
)
async def get_preferences(
    db: AsyncSession = Depends(get_db),
) -> PreferencesResponse:
    preferences = await preferences_service.get_preferences(db)
    if preferences is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return PreferencesResponse.model_validate(preferences)


@router.put(
    "/preferences",
    response_model=PreferencesResponse,
    summary="Update user preferences",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {"schema": PreferencesUpdate.model_json_schema()}
            },
            "required": True,
        }
    },
)
async def update_preferences(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> PreferencesResponse:
    """Merge a partial update into the stored preferences.

    Error Handling:
    - 413: body larger than ``preferences_max_body_bytes``
    - 400: body is not JSON, not an object, or holds invalid values
    - 404: user does not exist
    """
    body = await request.body()
    if len(body) > settings.preferences_max_body_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Request body too large (max {settings.preferences_max_body_bytes} bytes)",
        )

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON in request body",
        ) from e
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be a JSON object",
        )

    try:
        update = PreferencesUpdate.model_validate(payload)
    except ValidationError as e:
        logger.info("preferences_rejected", errors=e.error_count())
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Invalid preferences",
                "errors": e.errors(include_url=False, include_context=False),
            },
        ) from e

    preferences = await preferences_service.update_preferences(db, update)
    if preferences is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    await db.commit()
    return PreferencesResponse.model_validate(preferences)
