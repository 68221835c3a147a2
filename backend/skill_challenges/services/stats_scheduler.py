# backend/skill_challenges/services/stats_scheduler.py
# Déclencheur quotidien (cron APScheduler) du calcul de snapshot, exécuté par un worker RQ.

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi.concurrency import run_in_threadpool
from rq import Queue, Retry
from rq.job import Job

logger = logging.getLogger(__name__)

DAILY_STATS_JOB = "skill_challenges.workers.tasks.compute_daily_stats"
SCHEDULER_JOB_ID = "daily-challenge-stats"


class StatsScheduler:
    """Handle de tâche de fond pour le job statistique quotidien.

    Description:
        Démarré/arrêté explicitement par le lifespan de l’application. À chaque tick cron,
        un job RQ est mis en file avec `Retry` : une agrégation en échec est relancée
        par la file (backoff 1 min / 5 min / 15 min).
    """

    def __init__(
        self,
        queue: Queue,
        *,
        hour: int = 0,
        minute: int = 0,
        timezone: str = "UTC",
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.queue = queue
        self.timezone = timezone
        self.trigger = CronTrigger(hour=hour, minute=minute, timezone=timezone)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone)
        self._started = False
        self._shut_down = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Enregistrer le job cron et démarrer le scheduler (boucle asyncio requise).

        Description:
            `AsyncIOScheduler.shutdown` s’exécute de façon différée sur la boucle :
            après un `stop()`, un nouveau scheduler est construit plutôt que de
            redémarrer l’ancien.
        """
        if self._started:
            return
        if self._shut_down:
            self.scheduler = AsyncIOScheduler(timezone=self.timezone)
            self._shut_down = False
        self.scheduler.add_job(
            self.enqueue_daily_stats,
            self.trigger,
            id=SCHEDULER_JOB_ID,
            replace_existing=True,
            coalesce=True,
        )
        self.scheduler.start()
        self._started = True
        logger.info(f"Daily statistics aggregation job scheduled ({self.trigger})")

    def stop(self) -> None:
        if not self._started:
            return
        self.scheduler.shutdown(wait=False)
        self._started = False
        self._shut_down = True
        logger.info("Daily statistics scheduler stopped")

    async def enqueue_daily_stats(self) -> Job:
        job = await run_in_threadpool(
            self.queue.enqueue,
            DAILY_STATS_JOB,
            retry=Retry(max=3, interval=[60, 300, 900]),
            description="daily challenge statistics snapshot",
        )
        logger.info(f"Enqueued daily statistics job {job.id}")
        return job
