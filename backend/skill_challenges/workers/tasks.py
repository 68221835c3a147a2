# backend/skill_challenges/workers/tasks.py
# Points d’entrée des jobs RQ. Chaque job construit ses propres clients (pas de singleton).

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from skill_challenges.core.redis import create_async_redis
from skill_challenges.core.settings import Settings, get_settings
from skill_challenges.db.mongodb import create_mongo_client, get_database
from skill_challenges.services.challenge_cache import ChallengeListCache
from skill_challenges.services.completion_scheduler import mark_challenge_completed
from skill_challenges.services.statistics import StatisticsAggregator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def job_resources(settings: Settings):
    """Ouvre Mongo + cache Redis pour la durée d’un job, puis les ferme."""
    client = create_mongo_client(settings)
    redis = create_async_redis(settings) if settings.cache_enabled else None
    try:
        cache = ChallengeListCache(
            redis, prefix=settings.cache_prefix, ttl_seconds=settings.cache_ttl_seconds
        )
        yield get_database(client, settings), cache
    finally:
        client.close()
        if redis is not None:
            await redis.aclose()


async def _complete_challenge(challenge_id: str, settings: Settings) -> int:
    async with job_resources(settings) as (db, cache):
        return await mark_challenge_completed(db, cache, challenge_id)


async def _compute_daily_stats(settings: Settings) -> str | None:
    async with job_resources(settings) as (db, _cache):
        aggregator = StatisticsAggregator(db)
        snapshot = await aggregator.compute_daily_snapshot()
        return str(snapshot.id) if snapshot else None


def complete_challenge(challenge_id: str) -> int:
    """Job RQ déclenché à l’échéance d’un challenge.

    Returns:
        int: Nombre de documents modifiés (0 si le challenge a été supprimé).
    """
    logger.info(f"Completion job fired for challenge {challenge_id}")
    return asyncio.run(_complete_challenge(challenge_id, get_settings()))


def compute_daily_stats() -> str | None:
    """Job RQ quotidien ; une exception laisse RQ appliquer sa politique `Retry`."""
    try:
        return asyncio.run(_compute_daily_stats(get_settings()))
    except Exception as e:
        logger.error(f"Daily statistics job failed: {e}")
        raise
