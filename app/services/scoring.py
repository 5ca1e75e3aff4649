import asyncio
import random
from collections import Counter
from datetime import datetime, timezone

from loguru import logger

from app.core.constants import (
    NOISE_AMPLITUDE,
    RECENCY_HALF_LIFE_DAYS,
    UNSEEN_GENRE_WEIGHT,
    WEIGHT_GENRE,
    WEIGHT_NOISE,
    WEIGHT_POPULARITY,
    WEIGHT_RECENCY,
)
from app.core.errors import ModelUnavailableError
from app.models.recommendation import CandidateContent, ScoredRecommendation, UserProfile, WatchHistoryItem


class ScoringEngine:
    """
    Heuristic stand-in for an external inference call.

    Every call waits a random latency and may fail outright before producing
    anything. Scores blend popularity, genre affinity from watch history,
    content recency and a small amount of exploration noise.
    """

    def __init__(
        self,
        latency_ms: tuple[int, int] = (30, 50),
        failure_rate: float = 0.015,
        rng: random.Random | None = None,
    ):
        self.latency_ms = latency_ms
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()

    async def score(
        self,
        profile: UserProfile,
        history: list[WatchHistoryItem],
        candidates: list[CandidateContent],
        limit: int,
        now: datetime | None = None,
    ) -> list[ScoredRecommendation]:
        """
        Rank candidates for a user.

        Args:
            profile: User snapshot (not used by the heuristic, kept for parity with a real model)
            history: Most recent watch history, newest first
            candidates: Unwatched content ordered by popularity
            limit: Maximum number of recommendations to return
            now: Reference time for recency, defaults to the current UTC time

        Returns:
            Recommendations sorted by descending score, at most `limit` long

        Raises:
            ModelUnavailableError: simulated inference failure
        """
        low, high = self.latency_ms
        if high > 0:
            await asyncio.sleep(self._rng.uniform(low, high) / 1000.0)

        if self._rng.random() < self.failure_rate:
            logger.warning(f"Model inference failed for user {profile.id}")
            raise ModelUnavailableError("model inference failed")

        now = now or datetime.now(timezone.utc)
        genre_weights = self.genre_weights(history)

        scored = [
            ScoredRecommendation(
                content_id=content.id,
                title=content.title,
                genre=content.genre,
                popularity_score=content.popularity_score,
                score=round(self._final_score(content, genre_weights, now), 3),
            )
            for content in candidates
        ]
        # sorted() is stable, ties keep candidate order
        scored = sorted(scored, key=lambda rec: rec.score, reverse=True)
        return scored[: max(limit, 0)]

    @staticmethod
    def genre_weights(history: list[WatchHistoryItem]) -> dict[str, float]:
        """Share of each genre in the watch history."""
        if not history:
            return {}
        counts = Counter(item.genre for item in history)
        total = len(history)
        return {genre: count / total for genre, count in counts.items()}

    @staticmethod
    def genre_weight(genre: str, genre_weights: dict[str, float]) -> float:
        return genre_weights.get(genre, UNSEEN_GENRE_WEIGHT)

    @staticmethod
    def recency_factor(created_at: datetime, now: datetime) -> float:
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        days_since_created = (now - created_at).total_seconds() / 86400.0
        return 1.0 / (1.0 + days_since_created / RECENCY_HALF_LIFE_DAYS)

    def _noise(self) -> float:
        return self._rng.uniform(-NOISE_AMPLITUDE, NOISE_AMPLITUDE)

    def _final_score(self, content: CandidateContent, genre_weights: dict[str, float], now: datetime) -> float:
        return (
            content.popularity_score * WEIGHT_POPULARITY
            + self.genre_weight(content.genre, genre_weights) * WEIGHT_GENRE
            + self.recency_factor(content.created_at, now) * WEIGHT_RECENCY
            + self._noise() * WEIGHT_NOISE
        )
