import asyncio
import time
from datetime import datetime, timezone

from loguru import logger

from app.core.errors import ErrorKind, RequestTimeoutError, error_kind
from app.models.recommendation import BatchMeta, BatchResponse, BatchSummary, BatchUserResult
from app.services.recommendation_service import RecommendationService
from app.services.repository import Repository

# Closed vocabulary for per-user batch failures
_FAILURE_CODES: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.NOT_FOUND: ("user_not_found", "user not found"),
    ErrorKind.MODEL_UNAVAILABLE: ("model_inference_error", "recommendation model failed to generate a response"),
}
_INTERNAL_FAILURE = ("internal_error", "an unexpected error occurred")


def categorize_error(exc: BaseException) -> tuple[str, str]:
    """Map an exception to a (code, message) pair by its kind."""
    return _FAILURE_CODES.get(error_kind(exc), _INTERNAL_FAILURE)


class BatchRecommendationService:
    """
    Generates recommendations for one page of users concurrently.

    At most `concurrency` users are processed at a time across every batch this
    instance serves, so concurrent batch requests share one budget. Every user
    gets exactly one result at its input position, whether it succeeded or failed.
    """

    def __init__(
        self,
        repository: Repository,
        recommendation_service: RecommendationService,
        concurrency: int = 10,
        per_user_limit: int = 10,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.repository = repository
        self.recommendation_service = recommendation_service
        self.concurrency = concurrency
        self._gate = asyncio.Semaphore(concurrency)
        self.per_user_limit = per_user_limit

    async def get_batch(self, page: int, limit: int, timeout: float | None = None) -> BatchResponse:
        """
        Build recommendations for every user on a page.

        Raises:
            RepositoryError: the page or the user count couldn't be loaded
            RequestTimeoutError: `timeout` elapsed before every user finished
        """
        if timeout is None:
            return await self._get_batch(page, limit)
        try:
            return await asyncio.wait_for(self._get_batch(page, limit), timeout)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(f"batch page {page} timed out after {timeout}s") from exc

    async def _get_batch(self, page: int, limit: int) -> BatchResponse:
        start = time.perf_counter()

        user_ids = await self.repository.get_user_ids_page(page, limit)
        total_users = await self.repository.count_users()

        results: list[BatchUserResult | None] = [None] * len(user_ids)
        async def _process(idx: int, user_id: int) -> None:
            async with self._gate:
                results[idx] = await self._process_user(user_id)

        await asyncio.gather(*[_process(i, uid) for i, uid in enumerate(user_ids)])

        success_count = sum(1 for r in results if r.status == "success")
        failed_count = len(results) - success_count
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        logger.info(
            f"Batch page={page} limit={limit}: {success_count} succeeded, {failed_count} failed in {elapsed_ms}ms"
        )

        return BatchResponse(
            page=page,
            limit=limit,
            total_users=total_users,
            results=results,
            summary=BatchSummary(
                success_count=success_count,
                failed_count=failed_count,
                processing_time_ms=elapsed_ms,
            ),
            metadata=BatchMeta(generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")),
        )

    async def _process_user(self, user_id: int) -> BatchUserResult:
        """Recommendations for one user, with any failure captured in the result."""
        try:
            result = await self.recommendation_service.get_recommendations(user_id, self.per_user_limit)
        except Exception as e:
            logger.warning(f"Batch: failed for user {user_id}: {e}")
            code, message = categorize_error(e)
            return BatchUserResult.failure(user_id, code, message)
        return BatchUserResult.success(user_id, result.recommendations)
