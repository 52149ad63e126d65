"""
Celery worker entry point for the ``qa`` queue.

Usage:
    python -m legalclarity.worker
"""

from __future__ import annotations

import logging
import sys

from .config import get_settings
from .jobs import QueueBackend, get_queue_backend
from .logging import setup_logging
from .tasks import QA_QUEUE, register_qa_worker

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)

    if get_queue_backend() is not QueueBackend.CELERY:
        # The in-memory queue lives inside the API process
        logger.error("QUEUE_REDIS_URL is not set; a standalone worker cannot reach in-memory jobs")
        return 1

    logger.info("Starting worker", extra={"queue": QA_QUEUE})
    worker = register_qa_worker()
    worker.start()
    return 0


if __name__ == "__main__":
    sys.exit(main())
