import json

from app.models.recommendation import ScoredRecommendation

RECS = [
    ScoredRecommendation(content_id=3, title="Dune", genre="sci-fi", popularity_score=0.8, score=0.712),
    ScoredRecommendation(content_id=7, title="Se7en", genre="thriller", popularity_score=0.4, score=0.455),
]


class TestRecommendationCache:
    async def test_miss_on_empty(self, cache):
        assert await cache.get(1, 10) == (None, False)

    async def test_round_trip(self, cache, fake_redis):
        await cache.set(1, 10, RECS)

        recs, found = await cache.get(1, 10)

        assert found is True
        assert recs == RECS
        assert "rec:user:1:limit:10" in fake_redis.store
        assert json.loads(fake_redis.store["rec:user:1:limit:10"])[0] == {
            "content_id": 3,
            "title": "Dune",
            "genre": "sci-fi",
            "popularity_score": 0.8,
            "score": 0.712,
        }

    async def test_empty_list_is_a_hit(self, cache):
        await cache.set(1, 10, [])
        assert await cache.get(1, 10) == ([], True)

    async def test_written_with_ttl(self, cache, fake_redis):
        await cache.set(1, 10, RECS)
        assert fake_redis.setex_calls == [("rec:user:1:limit:10", 600)]

    async def test_expires_after_ttl(self, cache, fake_redis):
        await cache.set(1, 10, RECS)
        fake_redis.clock += 599
        assert (await cache.get(1, 10))[1] is True
        fake_redis.clock += 1
        assert await cache.get(1, 10) == (None, False)

    async def test_limits_are_independent(self, cache):
        await cache.set(1, 10, RECS)

        assert await cache.get(1, 5) == (None, False)
        assert await cache.get(1, 1) == (None, False)

    async def test_invalidate_removes_every_limit_for_user(self, cache, fake_redis):
        for limit in (1, 5, 10):
            await cache.set(1, limit, RECS[:1])
        await cache.set(12, 5, RECS)
        await cache.set(2, 10, RECS)

        deleted = await cache.invalidate(1)

        assert deleted == 3
        assert sorted(fake_redis.store) == ["rec:user:12:limit:5", "rec:user:1:gen", "rec:user:2:limit:10"]

    async def test_invalidate_with_nothing_cached(self, cache):
        assert await cache.invalidate(99) == 0

    async def test_corrupt_entry_reads_as_miss(self, cache, fake_redis):
        fake_redis.store["rec:user:1:limit:10"] = "{not json"
        assert await cache.get(1, 10) == (None, False)

    async def test_backend_down_degrades_silently(self, cache, fake_redis):
        await cache.set(1, 10, RECS)
        fake_redis.fail = True

        assert await cache.get(1, 10) == (None, False)
        await cache.set(1, 5, RECS)
        assert await cache.invalidate(1) == 0
        assert await cache.ping() is False

    async def test_ping(self, cache):
        assert await cache.ping() is True


class TestGeneration:
    async def test_starts_at_zero_and_bumps_on_invalidate(self, cache):
        assert await cache.generation(1) == 0
        await cache.invalidate(1)
        await cache.invalidate(1)
        assert await cache.generation(1) == 2
        assert await cache.generation(2) == 0

    async def test_write_from_before_invalidation_is_discarded(self, cache, fake_redis):
        generation = await cache.generation(1)
        await cache.invalidate(1)

        await cache.set(1, 10, RECS, generation=generation)

        assert "rec:user:1:limit:10" not in fake_redis.store
        assert await cache.get(1, 10) == (None, False)

    async def test_write_at_current_generation_is_kept(self, cache):
        await cache.invalidate(1)
        generation = await cache.generation(1)

        await cache.set(1, 10, RECS, generation=generation)

        assert await cache.get(1, 10) == (RECS, True)

    async def test_unreadable_generation(self, cache, fake_redis):
        fake_redis.store["rec:user:1:gen"] = "not-a-number"
        assert await cache.generation(1) is None
        fake_redis.fail = True
        assert await cache.generation(2) is None
