"""
Deterministic demo data: a small population of users, a content catalog with
skewed popularity and a watch history biased toward low ids.

Run directly with `python -m app.startup.seed` against DATABASE_URL.
"""

import asyncio
import math
import random
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import Content, User, WatchHistory

SEED = 42
USER_COUNT = 20
CONTENT_COUNT = 50
WATCH_EVENTS = 200

COUNTRIES = ["US", "GB", "CA", "AU", "DE", "FR", "JP", "BR"]
SUBSCRIPTION_TYPES = ["free", "basic", "premium"]
SUBSCRIPTION_WEIGHTS = [0.5, 0.3, 0.2]
GENRES = ["action", "drama", "comedy", "thriller", "sci-fi"]
TITLES: dict[str, list[str]] = {
    "action": [
        "Die Hard", "Mad Max: Fury Road", "John Wick", "The Dark Knight", "Gladiator",
        "Top Gun: Maverick", "The Raid", "Mission: Impossible", "Casino Royale", "The Avengers",
    ],
    "drama": [
        "The Shawshank Redemption", "Forrest Gump", "The Godfather", "Schindler's List", "A Beautiful Mind",
        "12 Angry Men", "Parasite", "Moonlight", "Whiplash", "The Green Mile",
    ],
    "comedy": [
        "Superbad", "The Hangover", "Bridesmaids", "Step Brothers", "Anchorman",
        "Mean Girls", "Borat", "Hot Fuzz", "Groundhog Day", "The Grand Budapest Hotel",
    ],
    "thriller": [
        "Se7en", "Gone Girl", "Zodiac", "Prisoners", "Sicario",
        "No Country for Old Men", "Nightcrawler", "Shutter Island", "The Silence of the Lambs", "Oldboy",
    ],
    "sci-fi": [
        "Blade Runner 2049", "Interstellar", "The Matrix", "Arrival", "Dune",
        "Ex Machina", "Alien", "Inception", "Edge of Tomorrow", "2001: A Space Odyssey",
    ],
}  # fmt: skip


def power_law_score(rng: random.Random) -> float:
    """Popularity in [0.01, 1.0], most items near the bottom."""
    u = rng.random() or 0.001
    return round(max(u**2.0, 0.01), 2)


def build_users(rng: random.Random, n: int, now: datetime) -> list[User]:
    return [
        User(
            id=i + 1,
            age=rng.randint(18, 65),
            country=rng.choice(COUNTRIES),
            subscription_type=rng.choices(SUBSCRIPTION_TYPES, weights=SUBSCRIPTION_WEIGHTS)[0],
            created_at=now - timedelta(days=rng.randrange(365)),
        )
        for i in range(n)
    ]


def build_content(rng: random.Random, n: int, now: datetime) -> list[Content]:
    items = []
    for i in range(n):
        genre = GENRES[i % len(GENRES)]
        titles = TITLES[genre]
        title = titles[i % len(titles)]
        if i >= len(GENRES):
            title = f"{title} {i // len(GENRES) + 1}"
        items.append(
            Content(
                id=i + 1,
                title=title,
                genre=genre,
                popularity_score=power_law_score(rng),
                created_at=now - timedelta(days=rng.randrange(730)),
            )
        )
    return items


def build_watch_history(
    rng: random.Random, n: int, user_count: int, content_count: int, now: datetime
) -> list[WatchHistory]:
    """Up to `n` distinct (user, content) watch events, skewed toward low ids."""
    seen: set[tuple[int, int]] = set()
    events = []
    for _ in range(n):
        user_id = min(max(1, math.ceil(rng.random() ** 1.5 * user_count)), user_count)
        content_id = min(max(1, math.ceil(rng.random() ** 1.3 * content_count)), content_count)
        if (user_id, content_id) in seen:
            continue
        seen.add((user_id, content_id))
        events.append(
            WatchHistory(
                user_id=user_id,
                content_id=content_id,
                watched_at=now - timedelta(days=rng.randrange(180)),
            )
        )
    return events


async def seed_database(
    session_factory: async_sessionmaker[AsyncSession],
    users: int = USER_COUNT,
    content: int = CONTENT_COUNT,
    watch_events: int = WATCH_EVENTS,
) -> bool:
    """
    Insert demo data unless users already exist.

    Returns:
        True if data was inserted, False if the database was already seeded
    """
    async with session_factory() as session, session.begin():
        existing = await session.scalar(select(func.count()).select_from(User))
        if existing:
            logger.info(f"Database already seeded ({existing} users), skipping")
            return False

        rng = random.Random(SEED)
        now = datetime.now(timezone.utc)

        logger.info(f"Seeding {users} users")
        session.add_all(build_users(rng, users, now))
        logger.info(f"Seeding {content} content items")
        session.add_all(build_content(rng, content, now))
        await session.flush()

        history = build_watch_history(rng, watch_events, users, content, now)
        logger.info(f"Seeding {len(history)} watch history rows")
        session.add_all(history)

    logger.info("Seeding complete")
    return True


async def _main() -> None:
    from app.core.config import settings
    from app.db.session import create_engine, create_session_factory, create_tables, wait_for_database

    engine = create_engine(settings.DATABASE_URL, settings.DB_POOL_SIZE)
    try:
        await wait_for_database(engine, settings.DB_CONNECT_ATTEMPTS, settings.DB_CONNECT_RETRY_SECONDS)
        await create_tables(engine)
        await seed_database(create_session_factory(engine))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(_main())
