from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Path, Query, status
from loguru import logger

from app.api.dependencies import get_recommendation_service
from app.api.errors import recommendation_error_response
from app.core.config import settings
from app.core.constants import DEFAULT_RECOMMENDATION_LIMIT, MAX_RECOMMENDATION_LIMIT
from app.core.errors import ErrorKind, error_kind
from app.models.recommendation import ErrorResponse, RecommendationMeta, RecommendationResponse, WatchHistoryCreate
from app.services.recommendation_service import RecommendationService

router = APIRouter(prefix="/users", tags=["recommendations"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.get("/{user_id}/recommendations", response_model=RecommendationResponse, responses=ERROR_RESPONSES)
async def get_recommendations(
    user_id: int = Path(gt=0),
    limit: int = Query(DEFAULT_RECOMMENDATION_LIMIT, ge=1, le=MAX_RECOMMENDATION_LIMIT),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Personalized recommendations for one user."""
    try:
        result = await service.get_recommendations(user_id, limit, timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except Exception as e:
        if error_kind(e) == ErrorKind.INTERNAL:
            logger.exception(f"Error generating recommendations for user {user_id}: {e}")
        else:
            logger.warning(f"Recommendations for user {user_id} failed: {e}")
        return recommendation_error_response(e)

    return RecommendationResponse(
        user_id=user_id,
        recommendations=result.recommendations,
        metadata=RecommendationMeta(
            cache_hit=result.cache_hit,
            generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            total_count=len(result.recommendations),
        ),
    )


@router.post("/{user_id}/watch-history", status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
async def add_watch_history(
    body: WatchHistoryCreate,
    user_id: int = Path(gt=0),
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Record a watch event; the user's cached recommendations are cleared."""
    try:
        await service.add_watch_history(user_id, body.content_id, timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except Exception as e:
        if error_kind(e) == ErrorKind.INTERNAL:
            logger.exception(f"Error adding watch history for user {user_id}: {e}")
        else:
            logger.warning(f"Watch history for user {user_id} failed: {e}")
        return recommendation_error_response(e)
    return {"status": "ok"}
