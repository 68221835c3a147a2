# backend/skill_challenges/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis import Redis

from skill_challenges.api.routes import routers
from skill_challenges.core.exception_handlers import register_exception_handlers
from skill_challenges.core.logging_config import setup_logging
from skill_challenges.core.redis import create_async_redis, create_queue
from skill_challenges.core.settings import Settings, get_settings
from skill_challenges.db.indexes import ensure_indexes
from skill_challenges.db.mongodb import create_mongo_client, get_database
from skill_challenges.services.challenge_cache import ChallengeListCache
from skill_challenges.services.challenge_service import ChallengeService
from skill_challenges.services.completion_scheduler import CompletionScheduler
from skill_challenges.services.stats_scheduler import StatsScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- startup ---
    settings: Settings = app.state.settings
    logger = setup_logging(settings)

    client = create_mongo_client(settings)
    db = get_database(client, settings)
    await ensure_indexes(db)

    redis = create_async_redis(settings) if settings.cache_enabled else None
    queue_conn = Redis.from_url(settings.redis_url)
    completion_queue = create_queue(settings, settings.completion_queue_name, connection=queue_conn)
    stats_queue = create_queue(settings, settings.stats_queue_name, connection=queue_conn)

    cache = ChallengeListCache(
        redis, prefix=settings.cache_prefix, ttl_seconds=settings.cache_ttl_seconds
    )
    app.state.db = db
    app.state.redis = redis
    # consommé par la couche HTTP (routes challenges / auth, hors de ce package)
    app.state.challenge_service = ChallengeService(
        db,
        cache,
        CompletionScheduler(completion_queue),
        snapshot_strict_match=settings.stats_snapshot_strict_match,
    )

    stats_scheduler = StatsScheduler(
        stats_queue,
        hour=settings.stats_cron_hour,
        minute=settings.stats_cron_minute,
        timezone=settings.stats_timezone,
    )
    stats_scheduler.start()
    app.state.stats_scheduler = stats_scheduler
    logger.info(f"{settings.app_name} started (env: {settings.environment})")

    yield  # l'app tourne ici

    # --- shutdown ---
    stats_scheduler.stop()
    client.close()
    if redis is not None:
        await redis.aclose()
    queue_conn.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=f"{settings.app_name} API", version=settings.api_version, lifespan=lifespan)
    app.state.settings = settings

    register_exception_handlers(app)
    for r in routers:
        app.include_router(r)
    return app
