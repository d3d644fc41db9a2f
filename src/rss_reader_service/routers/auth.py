"""Inoreader authentication status endpoint."""

from fastapi import APIRouter

from rss_reader_service.schemas.auth import AuthStatusResponse
from rss_reader_service.services.auth_status_service import check_token_status

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get(
    "/inoreader/status",
    response_model=AuthStatusResponse,
    summary="Inoreader OAuth token status",
    description=(
        "Always answers 200; ``authenticated`` and ``status`` describe whether "
        "the sync can reach Inoreader and when the tokens expire."
    ),
)
async def inoreader_status() -> AuthStatusResponse:
    return check_token_status()
