# Run this with: python -m skill_challenges.workers.worker
# (equivalent: rq worker --with-scheduler -u $REDIS_URL challenge-completion challenge-statistics)
import logging

from redis import Redis
from rq import Worker

from skill_challenges.core.logging_config import setup_logging
from skill_challenges.core.redis import create_queue
from skill_challenges.core.settings import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging(settings)

    conn = Redis.from_url(settings.redis_url)
    queues = [
        create_queue(settings, settings.completion_queue_name, connection=conn),
        create_queue(settings, settings.stats_queue_name, connection=conn),
    ]
    # le scheduler intégré déplace les jobs différés vers leur file à l'échéance
    worker = Worker(queues, connection=conn)
    logger.info(f"Starting RQ worker on {[q.name for q in queues]}")
    worker.work(with_scheduler=True)


if __name__ == '__main__':
    main()
