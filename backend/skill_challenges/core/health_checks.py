import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


async def check_mongodb(db: AsyncIOMotorDatabase) -> str:
    """
    Vérifie la connexion MongoDB

    Returns:
        "ok" si connecté, message d'erreur sinon
    """
    try:
        await db.command("ping")
        return "ok"

    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return f"error: {str(e)}"


async def check_redis(redis: Redis | None) -> str:
    """
    Vérifie la connexion Redis (cache + files de jobs)

    Returns:
        "ok" si joignable, "disabled" si le cache est coupé, message d'erreur sinon
    """
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
        return "ok"

    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return f"error: {str(e)}"
