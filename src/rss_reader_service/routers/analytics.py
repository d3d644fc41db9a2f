"""Full-text fetch analytics endpoint."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rss_reader_service.database import get_db
from rss_reader_service.logging_config import get_logger
from rss_reader_service.schemas.analytics import FetchStatsResponse
from rss_reader_service.services.fetch_stats_service import get_fetch_stats

logger = get_logger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get(
    "/fetch-stats",
    response_model=FetchStatsResponse,
    summary="Success and failure counts of full-text fetches",
)
async def fetch_stats(db: AsyncSession = Depends(get_db)) -> FetchStatsResponse:
    try:
        return await get_fetch_stats(db)
    except SQLAlchemyError as e:
        logger.error("fetch_stats_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get fetch statistics: {e}",
        ) from e
