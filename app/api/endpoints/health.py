from fastapi import APIRouter, Depends

from app.api.dependencies import get_cache, get_repository
from app.services.recommendation_cache import RecommendationCache
from app.services.repository import Repository

router = APIRouter(tags=["health"])


@router.get("/health", summary="Readiness probe")
async def health_check(
    repository: Repository = Depends(get_repository),
    cache: RecommendationCache = Depends(get_cache),
) -> dict[str, str]:
    """The service stays usable without Redis, so only the database decides the status."""
    database_ok = await repository.ping()
    redis_ok = await cache.ping()
    return {
        "status": "ok" if database_ok else "degraded",
        "database": "ok" if database_ok else "unavailable",
        "redis": "ok" if redis_ok else "unavailable",
    }
