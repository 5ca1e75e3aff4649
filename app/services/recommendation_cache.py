import json

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from app.core.constants import RECOMMENDATION_GENERATION_KEY, RECOMMENDATION_KEY, RECOMMENDATION_USER_PATTERN
from app.core.errors import CacheError
from app.models.recommendation import ScoredRecommendation
from app.services.redis_service import RedisService

_recommendations_adapter = TypeAdapter(list[ScoredRecommendation])


class RecommendationCache:
    """
    Cache-aside store for scored recommendations, one entry per (user, limit).

    Nothing here raises: a broken or unreachable backend reads as a miss and
    writes become no-ops, so callers always fall back to regeneration.
    """

    def __init__(self, redis_service: RedisService, ttl_seconds: int = 600):
        self.redis = redis_service
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(user_id: int, limit: int) -> str:
        """Generate cache key for a user's recommendations at a given limit."""
        return RECOMMENDATION_KEY.format(user_id=user_id, limit=limit)

    async def get(self, user_id: int, limit: int) -> tuple[list[ScoredRecommendation] | None, bool]:
        """
        Get cached recommendations.

        Args:
            user_id: User id
            limit: Recommendation limit the entry was computed for

        Returns:
            (recommendations, found). found is False on a miss or any backend error.
        """
        key = self._key(user_id, limit)
        try:
            cached = await self.redis.get(key)
        except CacheError as e:
            logger.warning(f"Cache get failed for user {user_id}: {e}")
            return None, False

        if cached is None:
            logger.debug(f"Cache miss for {key}")
            return None, False

        try:
            recs = _recommendations_adapter.validate_json(cached)
        except ValidationError as e:
            logger.warning(f"Failed to decode cached recommendations for {key}: {e}")
            return None, False

        logger.debug(f"Cache hit for {key}")
        return recs, True

    async def generation(self, user_id: int) -> int | None:
        """
        Current invalidation generation for a user, 0 if never invalidated.
        None when the backend can't be read.
        """
        key = RECOMMENDATION_GENERATION_KEY.format(user_id=user_id)
        try:
            value = await self.redis.get(key)
        except CacheError as e:
            logger.warning(f"Cache generation read failed for user {user_id}: {e}")
            return None
        try:
            return int(value) if value is not None else 0
        except ValueError:
            logger.warning(f"Corrupt cache generation for user {user_id}: {value!r}")
            return None

    async def set(
        self,
        user_id: int,
        limit: int,
        recommendations: list[ScoredRecommendation],
        generation: int | None = None,
    ) -> None:
        """
        Cache recommendations for a user at a given limit.

        Args:
            user_id: User id
            limit: Recommendation limit
            recommendations: Fully computed recommendation list
            generation: Generation read before the list was computed. If an
                invalidation happened since, the written entry is removed again.
        """
        key = self._key(user_id, limit)
        payload = json.dumps([rec.model_dump() for rec in recommendations])
        try:
            await self.redis.set(key, payload, self.ttl_seconds)
        except CacheError as e:
            logger.warning(f"Cache set failed for user {user_id}: {e}")
            return

        # invalidate bumps the generation before deleting, so checking after the
        # write leaves no window where a stale entry survives
        if generation is not None and await self.generation(user_id) != generation:
            try:
                await self.redis.delete(key)
            except CacheError as e:
                logger.warning(f"Failed to discard stale cache entry {key}: {e}")
            logger.debug(f"Discarded stale recommendations for {key}")
            return
        logger.debug(f"Cached {len(recommendations)} recommendations for {key}")

    async def invalidate(self, user_id: int) -> int:
        """
        Invalidate every cached entry for a user across all limits, and bump
        the user's generation so in-flight writes computed earlier are dropped.

        Returns:
            Number of entries removed (0 when the backend is unavailable)
        """
        pattern = RECOMMENDATION_USER_PATTERN.format(user_id=user_id)
        try:
            await self.redis.incr(RECOMMENDATION_GENERATION_KEY.format(user_id=user_id))
            deleted_count = await self.redis.delete_by_pattern(pattern)
        except CacheError as e:
            logger.warning(f"Cache invalidation failed for user {user_id}: {e}")
            return 0

        if deleted_count > 0:
            logger.debug(f"Invalidated {deleted_count} recommendation cache(s) for user {user_id}")
        else:
            logger.debug(f"No recommendation caches found to invalidate for user {user_id}")
        return deleted_count

    async def ping(self) -> bool:
        return await self.redis.ping()
