# backend/skill_challenges/core/redis.py
# Fabriques de connexions Redis : client asynchrone (cache) et files RQ (client synchrone).

from redis import Redis
from redis.asyncio import Redis as AsyncRedis
from rq import Queue

from skill_challenges.core.settings import Settings


def create_async_redis(settings: Settings) -> AsyncRedis:
    """Client Redis asynchrone pour le cache des listings (réponses décodées en str)."""
    return AsyncRedis.from_url(settings.redis_url, decode_responses=True)


def create_queue(settings: Settings, name: str, connection: Redis | None = None) -> Queue:
    """File RQ nommée.

    Description:
        RQ sérialise les jobs en pickle : la connexion ne doit PAS décoder les réponses.

    Args:
        settings (Settings): Configuration (URL Redis).
        name (str): Nom de la file.
        connection (Redis | None): Connexion à réutiliser entre plusieurs files.

    Returns:
        Queue: File RQ.
    """
    connection = connection or Redis.from_url(settings.redis_url)
    return Queue(name, connection=connection)
