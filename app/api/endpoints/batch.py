from fastapi import APIRouter, Depends, Query
from loguru import logger

from app.api.dependencies import get_batch_service
from app.api.errors import recommendation_error_response
from app.core.config import settings
from app.core.constants import DEFAULT_BATCH_PAGE_SIZE, MAX_BATCH_PAGE, MAX_BATCH_PAGE_SIZE
from app.models.recommendation import BatchResponse
from app.services.batch_service import BatchRecommendationService

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("/batch", response_model=BatchResponse, response_model_exclude_none=True)
async def get_batch_recommendations(
    page: int = Query(1, ge=1, le=MAX_BATCH_PAGE),
    limit: int = Query(DEFAULT_BATCH_PAGE_SIZE, ge=1, le=MAX_BATCH_PAGE_SIZE),
    service: BatchRecommendationService = Depends(get_batch_service),
):
    """
    Recommendations for a page of users. Per-user failures are reported inside
    the results; only a failure to load the page itself fails the request.
    """
    try:
        return await service.get_batch(page, limit, timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except Exception as e:
        logger.exception(f"Error building batch page={page} limit={limit}: {e}")
        return recommendation_error_response(e)
