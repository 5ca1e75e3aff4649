import fnmatch
import random
from datetime import datetime, timedelta, timezone

import pytest
import redis.asyncio as redis

from app.core.errors import ContentNotFoundError, UserNotFoundError
from app.models.recommendation import CandidateContent, UserProfile, WatchHistoryItem
from app.services.recommendation_cache import RecommendationCache
from app.services.recommendation_service import RecommendationService
from app.services.redis_service import RedisService
from app.services.scoring import ScoringEngine

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis covering the calls the app makes."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.clock = 0.0
        self.fail = False
        self.setex_calls: list[tuple[str, int]] = []

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("connection refused")

    def _purge(self, key: str) -> None:
        if key in self.expiry and self.expiry[key] <= self.clock:
            self.store.pop(key, None)
            self.expiry.pop(key, None)

    async def get(self, key):
        self._check()
        self._purge(key)
        return self.store.get(key)

    async def set(self, key, value):
        self._check()
        self.store[key] = value
        self.expiry.pop(key, None)
        return True

    async def setex(self, key, ttl, value):
        self._check()
        self.setex_calls.append((key, ttl))
        self.store[key] = value
        self.expiry[key] = self.clock + ttl
        return True

    async def incr(self, key):
        self._check()
        self._purge(key)
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if key in self.store:
                deleted += 1
            self.store.pop(key, None)
            self.expiry.pop(key, None)
        return deleted

    async def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.store):
            self._purge(key)
            if key in self.store and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        return None


class InMemoryRepository:
    """Repository double backed by plain lists, with call counters and failure injection."""

    def __init__(self):
        self.users: dict[int, UserProfile] = {}
        self.content: dict[int, CandidateContent] = {}
        self.history: list[tuple[int, int, datetime]] = []
        self.calls: dict[str, int] = {}
        self.failures: dict[str, Exception] = {}

    def _enter(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        if name in self.failures:
            raise self.failures[name]

    def add_user(self, user_id: int) -> None:
        self.users[user_id] = UserProfile(
            id=user_id, age=30, country="US", subscription_type="premium", created_at=NOW
        )

    def add_content(self, content_id: int, genre: str, popularity: float, age_days: float = 0.0) -> None:
        self.content[content_id] = CandidateContent(
            id=content_id,
            title=f"{genre.title()} {content_id}",
            genre=genre,
            popularity_score=popularity,
            created_at=NOW - timedelta(days=age_days),
        )

    def watch(self, user_id: int, content_id: int, days_ago: float = 1.0) -> None:
        self.history.append((user_id, content_id, NOW - timedelta(days=days_ago)))

    async def get_user(self, user_id):
        self._enter("get_user")
        if user_id not in self.users:
            raise UserNotFoundError(user_id)
        return self.users[user_id]

    async def get_recent_watch_history(self, user_id, cap):
        self._enter("get_recent_watch_history")
        rows = sorted((h for h in self.history if h[0] == user_id), key=lambda h: h[2], reverse=True)
        return [
            WatchHistoryItem(content_id=cid, genre=self.content[cid].genre, watched_at=at) for _, cid, at in rows[:cap]
        ]

    async def get_unwatched_candidates(self, user_id, cap):
        self._enter("get_unwatched_candidates")
        watched = {cid for uid, cid, _ in self.history if uid == user_id}
        pool = [c for c in self.content.values() if c.id not in watched]
        pool.sort(key=lambda c: (-c.popularity_score, c.id))
        return pool[:cap]

    async def get_user_ids_page(self, page, limit):
        self._enter("get_user_ids_page")
        ids = sorted(self.users)
        offset = (page - 1) * limit
        return ids[offset : offset + limit]  # noqa

    async def count_users(self):
        self._enter("count_users")
        return len(self.users)

    async def append_watch_history(self, user_id, content_id):
        self._enter("append_watch_history")
        if user_id not in self.users:
            raise UserNotFoundError(user_id)
        if content_id not in self.content:
            raise ContentNotFoundError(content_id)
        self.history.append((user_id, content_id, datetime.now(timezone.utc)))

    async def ping(self):
        return True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis) -> RecommendationCache:
    return RecommendationCache(RedisService("redis://unused", client=fake_redis), ttl_seconds=600)


@pytest.fixture
def repository() -> InMemoryRepository:
    repo = InMemoryRepository()
    for user_id in range(1, 21):
        repo.add_user(user_id)
    genres = ["action", "drama", "comedy", "thriller", "sci-fi"]
    for content_id in range(1, 31):
        repo.add_content(content_id, genres[content_id % 5], round(content_id / 30, 2), age_days=content_id * 10)
    repo.watch(1, 5)
    repo.watch(1, 10)
    repo.watch(1, 15, days_ago=3)
    return repo


@pytest.fixture
def scoring_engine() -> ScoringEngine:
    return ScoringEngine(latency_ms=(0, 0), failure_rate=0.0, rng=random.Random(7))


@pytest.fixture
def service(repository, cache, scoring_engine) -> RecommendationService:
    return RecommendationService(repository, cache, scoring_engine)
