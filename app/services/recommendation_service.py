import asyncio

from loguru import logger

from app.core.constants import (
    CANDIDATE_POOL_SIZE,
    DEFAULT_RECOMMENDATION_LIMIT,
    MAX_RECOMMENDATION_LIMIT,
    WATCH_HISTORY_LIMIT,
)
from app.core.errors import RecommendationError, RepositoryError, RequestTimeoutError
from app.models.recommendation import RecommendationResult, ScoredRecommendation
from app.services.recommendation_cache import RecommendationCache
from app.services.repository import Repository
from app.services.scoring import ScoringEngine


def clamp_limit(limit: int) -> int:
    if limit <= 0:
        return DEFAULT_RECOMMENDATION_LIMIT
    return min(limit, MAX_RECOMMENDATION_LIMIT)


class RecommendationService:
    """
    Single-user recommendation flow: cache lookup, then on a miss fetch the
    user's data, score it and write the result back.
    """

    def __init__(self, repository: Repository, cache: RecommendationCache, scoring_engine: ScoringEngine):
        self.repository = repository
        self.cache = cache
        self.scoring_engine = scoring_engine

    async def get_recommendations(
        self, user_id: int, limit: int, timeout: float | None = None
    ) -> RecommendationResult:
        """
        Get recommendations for a user.

        Args:
            user_id: User id
            limit: Requested list size, clamped to [1, MAX_RECOMMENDATION_LIMIT]
            timeout: Optional deadline in seconds for the whole call

        Raises:
            UserNotFoundError: user does not exist
            ModelUnavailableError: scoring failed
            RequestTimeoutError: `timeout` elapsed
            RepositoryError: data access failed
        """
        limit = clamp_limit(limit)
        if timeout is None:
            return await self._get_recommendations(user_id, limit)
        try:
            return await asyncio.wait_for(self._get_recommendations(user_id, limit), timeout)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(f"recommendations for user {user_id} timed out after {timeout}s") from exc

    async def _get_recommendations(self, user_id: int, limit: int) -> RecommendationResult:
        cached, found = await self.cache.get(user_id, limit)
        if found:
            return RecommendationResult(recommendations=cached, cache_hit=True)

        generation = await self.cache.generation(user_id)
        recs = await self._generate(user_id, limit)
        if generation is not None:
            await self.cache.set(user_id, limit, recs, generation=generation)
        return RecommendationResult(recommendations=recs, cache_hit=False)

    async def _generate(self, user_id: int, limit: int) -> list[ScoredRecommendation]:
        profile = await self._fetch("fetch user", self.repository.get_user(user_id))
        history = await self._fetch(
            "fetch watch history", self.repository.get_recent_watch_history(user_id, WATCH_HISTORY_LIMIT)
        )
        candidates = await self._fetch(
            "fetch candidates", self.repository.get_unwatched_candidates(user_id, CANDIDATE_POOL_SIZE)
        )
        return await self.scoring_engine.score(profile, history, candidates, limit)

    @staticmethod
    async def _fetch(stage: str, call):
        try:
            return await call
        except RepositoryError as e:
            raise e.with_context(stage) from e
        except RecommendationError:
            raise
        except Exception as e:
            raise RepositoryError(f"{stage}: {e}") from e

    async def add_watch_history(self, user_id: int, content_id: int, timeout: float | None = None) -> None:
        """
        Record a watch event and drop every cached list for the user.
        Invalidation problems are logged by the cache and never surfaced.

        Raises:
            UserNotFoundError / ContentNotFoundError: either side of the event is missing
            RequestTimeoutError: `timeout` elapsed
            RepositoryError: the insert failed
        """
        if timeout is None:
            await self._add_watch_history(user_id, content_id)
            return
        try:
            await asyncio.wait_for(self._add_watch_history(user_id, content_id), timeout)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(f"watch history for user {user_id} timed out after {timeout}s") from exc

    async def _add_watch_history(self, user_id: int, content_id: int) -> None:
        await self.repository.append_watch_history(user_id, content_id)
        # once the row is committed the invalidation must finish even if the caller gives up
        deleted = await asyncio.shield(self.cache.invalidate(user_id))
        logger.info(f"User {user_id} watched content {content_id}, cleared {deleted} cached list(s)")
