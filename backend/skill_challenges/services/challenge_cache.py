# backend/skill_challenges/services/challenge_cache.py
# Cache Redis des pages de listing ; simple optimisation, jamais source de vérité.

from __future__ import annotations

import logging

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "challenges"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class ChallengeListCache:
    """Cache clé/valeur devant le listing paginé des challenges.

    Description:
        - clé déterministe `(prefix, page, limit, status|all)`
        - toute mutation invalide *toutes* les pages (invalidation grossière)
        - `redis=None` désactive le cache : lectures toujours en miss, écritures ignorées
        - une erreur Redis est journalisée puis avalée (lecture = miss)
    """

    def __init__(
        self,
        redis: Redis | None,
        *,
        prefix: str = DEFAULT_PREFIX,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self.redis = redis
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    def make_key(self, page: int, limit: int, status: str | None = None) -> str:
        return f"{self.prefix}:page:{page}:limit:{limit}:status:{status or 'all'}"

    async def get(self, key: str) -> str | None:
        """Lire une page sérialisée.

        Args:
            key (str): Clé issue de `make_key`.

        Returns:
            str | None: Valeur JSON, ou None si absente / cache désactivé / Redis en erreur.
        """
        if self.redis is None:
            return None
        try:
            return await self.redis.get(key)
        except Exception as e:
            logger.error(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: str) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(key, value, ex=self.ttl_seconds)
        except Exception as e:
            logger.error(f"Cache write failed for {key}: {e}")

    async def invalidate_all(self) -> int:
        """Supprimer toutes les clés du préfixe de listing.

        Returns:
            int: Nombre de clés supprimées (0 si désactivé ou en erreur).
        """
        if self.redis is None:
            return 0
        try:
            keys = [key async for key in self.redis.scan_iter(match=f"{self.prefix}:*")]
            if not keys:
                return 0
            deleted = await self.redis.delete(*keys)
        except Exception as e:
            logger.error(f"Cache invalidation failed for prefix {self.prefix}: {e}")
            return 0
        logger.info(f"Cleared {deleted} cached listing page(s)")
        return deleted
