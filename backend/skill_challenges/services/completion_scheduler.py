# backend/skill_challenges/services/completion_scheduler.py
# Planification durable (RQ/Redis) du passage `completed` d’un challenge à son échéance.

from __future__ import annotations

import datetime as dt
import logging

from bson import ObjectId
from fastapi.concurrency import run_in_threadpool
from motor.motor_asyncio import AsyncIOMotorDatabase
from rq import Queue, Retry
from rq.job import Job

from skill_challenges.core.utils import ensure_aware, utcnow
from skill_challenges.db.mongodb import CHALLENGES
from skill_challenges.models.challenge import ChallengeStatus
from skill_challenges.services.challenge_cache import ChallengeListCache

logger = logging.getLogger(__name__)

COMPLETION_JOB = "skill_challenges.workers.tasks.complete_challenge"
PAYLOAD_KEY = "challenge_id"


class CompletionScheduler:
    """Un job différé par challenge, identifié par l’id du challenge dans son payload.

    Description:
        Les jobs vivent dans le `ScheduledJobRegistry` de la file RQ (Redis) et survivent
        donc aux redémarrages ; un worker lancé avec scheduler les déclenche à l’échéance.
        RQ est bloquant : chaque appel passe par le threadpool.
    """

    def __init__(self, queue: Queue, *, retry: Retry | None = None):
        self.queue = queue
        self.retry = retry or Retry(max=3, interval=[10, 60, 300])

    async def schedule(self, challenge_id: str | ObjectId, deadline: dt.datetime) -> str | None:
        """Planifier la complétion d’un challenge.

        Description:
            délai = deadline - maintenant ; rien n’est planifié si l’échéance est passée
            (un tel challenge ne se termine jamais automatiquement).

        Args:
            challenge_id (str | ObjectId): Identifiant du challenge.
            deadline (datetime): Échéance.

        Returns:
            str | None: Id du job RQ, ou None si rien n’a été planifié.
        """
        delay = ensure_aware(deadline) - utcnow()
        if delay <= dt.timedelta(0):
            logger.info(f"Deadline already passed for challenge {challenge_id}, nothing scheduled")
            return None
        job = await run_in_threadpool(self._enqueue, str(challenge_id), delay)
        logger.info(f"Scheduled completion of challenge {challenge_id} in {delay} (job {job.id})")
        return job.id

    async def list_pending(self, challenge_id: str | ObjectId | None = None) -> list[Job]:
        """Jobs en attente (pas encore déclenchés), éventuellement filtrés par challenge."""
        return await run_in_threadpool(self._pending_jobs, None if challenge_id is None else str(challenge_id))

    async def cancel(self, challenge_id: str | ObjectId) -> int:
        """Retirer tous les jobs en attente qui référencent ce challenge.

        Returns:
            int: Nombre de jobs retirés (0 si aucun).
        """
        removed = await run_in_threadpool(self._remove_jobs, str(challenge_id))
        if removed:
            logger.info(f"Removed {removed} pending completion job(s) for challenge {challenge_id}")
        return removed

    async def reschedule(self, challenge_id: str | ObjectId, new_deadline: dt.datetime) -> str | None:
        """Annuler puis recréer ; RQ n’offre pas de modification atomique d’un job différé."""
        await self.cancel(challenge_id)
        return await self.schedule(challenge_id, new_deadline)

    # ------------------------------------------------------------------
    # Appels RQ (synchrones)
    # ------------------------------------------------------------------

    def _enqueue(self, challenge_id: str, delay: dt.timedelta) -> Job:
        return self.queue.enqueue_in(
            delay,
            COMPLETION_JOB,
            challenge_id,
            meta={PAYLOAD_KEY: challenge_id},
            retry=self.retry,
            description=f"complete challenge {challenge_id}",
        )

    def _pending_jobs(self, challenge_id: str | None) -> list[Job]:
        registry = self.queue.scheduled_job_registry
        jobs = []
        for job_id in registry.get_job_ids():
            job = self.queue.fetch_job(job_id)
            if job is None:
                continue
            if challenge_id is None or _payload_challenge_id(job) == challenge_id:
                jobs.append(job)
        return jobs

    def _remove_jobs(self, challenge_id: str) -> int:
        registry = self.queue.scheduled_job_registry
        jobs = self._pending_jobs(challenge_id)
        for job in jobs:
            registry.remove(job, delete_job=True)
        return len(jobs)


def _payload_challenge_id(job: Job) -> str | None:
    if job.meta.get(PAYLOAD_KEY):
        return job.meta[PAYLOAD_KEY]
    return str(job.args[0]) if job.args else None


async def mark_challenge_completed(
    db: AsyncIOMotorDatabase,
    cache: ChallengeListCache,
    challenge_id: str,
) -> int:
    """Handler de déclenchement : passer le challenge à `completed`.

    Description:
        Mise à jour inconditionnelle (idempotente, la livraison RQ est at-least-once),
        puis invalidation du cache. Un challenge supprimé entre-temps modifie 0 document,
        ce qui n’est pas une erreur.

    Args:
        db (AsyncIOMotorDatabase): Base applicative.
        cache (ChallengeListCache): Cache des listings.
        challenge_id (str): Id porté par le job.

    Returns:
        int: Nombre de documents modifiés.
    """
    if not ObjectId.is_valid(challenge_id):
        logger.warning(f"Ignoring completion job with malformed challenge id {challenge_id!r}")
        return 0

    result = await db[CHALLENGES].update_one(
        {"_id": ObjectId(challenge_id)},
        {"$set": {"status": ChallengeStatus.COMPLETED.value, "updated_at": utcnow()}},
    )
    await cache.invalidate_all()
    logger.info(f"Challenge {challenge_id} marked completed (modified={result.modified_count})")
    return result.modified_count
