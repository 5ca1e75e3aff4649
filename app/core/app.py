import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.api.errors import error_response
from app.api.main import api_router
from app.db.session import create_engine, create_session_factory, create_tables, wait_for_database
from app.services.batch_service import BatchRecommendationService
from app.services.recommendation_cache import RecommendationCache
from app.services.recommendation_service import RecommendationService
from app.services.redis_service import RedisService
from app.services.repository import Repository
from app.services.scoring import ScoringEngine
from app.startup.seed import seed_database

from .config import settings
from .version import __version__


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    Builds every collaborator once and exposes them on app.state.
    """
    configure_logging(settings.LOG_LEVEL)

    engine = create_engine(settings.DATABASE_URL, settings.DB_POOL_SIZE)
    await wait_for_database(engine, settings.DB_CONNECT_ATTEMPTS, settings.DB_CONNECT_RETRY_SECONDS)
    await create_tables(engine)
    session_factory = create_session_factory(engine)
    if settings.SEED_ON_STARTUP:
        await seed_database(session_factory)

    redis_service = RedisService(settings.REDIS_URL, max_connections=settings.REDIS_MAX_CONNECTIONS)
    repository = Repository(session_factory)
    cache = RecommendationCache(redis_service, ttl_seconds=settings.CACHE_TTL_SECONDS)
    scoring_engine = ScoringEngine(
        latency_ms=(settings.MODEL_LATENCY_MIN_MS, settings.MODEL_LATENCY_MAX_MS),
        failure_rate=settings.MODEL_FAILURE_RATE,
    )
    recommendation_service = RecommendationService(repository, cache, scoring_engine)

    app.state.repository = repository
    app.state.cache = cache
    app.state.recommendation_service = recommendation_service
    app.state.batch_service = BatchRecommendationService(
        repository,
        recommendation_service,
        concurrency=settings.BATCH_CONCURRENCY,
        per_user_limit=settings.BATCH_RECOMMENDATION_LIMIT,
    )
    logger.info(f"Recommendation service {__version__} started ({settings.APP_ENV})")

    yield

    await redis_service.close()
    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="Recommendation Service",
    description="Personalized content recommendations from watch history, popularity and genre affinity",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    loc = errors[0].get("loc", ()) if errors else ()
    field = str(loc[-1]) if loc else "request"
    return error_response(status.HTTP_400_BAD_REQUEST, "invalid_parameter", f"Invalid {field} parameter")


app.include_router(api_router)
