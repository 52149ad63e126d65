"""Job workers: run a registered handler for each job on a named queue."""
from __future__ import annotations

import asyncio
import logging
import socket
import threading
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from celery import Celery, Task

from ..celery_config import celery_app, task_name_for
from ..config import get_settings
from .progress import CeleryProgressReporter, InMemoryProgressReporter, ProgressReporter
from .queue import InMemoryJobQueue, QueueBackend, get_queue_backend, in_memory_queue

logger = logging.getLogger(__name__)

JobHandler = Callable[[Any, ProgressReporter], Awaitable[Any]]


class JobWorker(ABC):
    def __init__(self, queue_name: str) -> None:
        self.queue_name = queue_name

    @abstractmethod
    def start(self) -> None:
        """Begin consuming jobs."""

    @abstractmethod
    def stop(self) -> None:
        """Stop consuming jobs."""


class InMemoryJobWorker(JobWorker):
    """Polls an in-memory queue from a daemon thread.

    One job runs at a time; the handler's result or error message is
    written back to the queue's status record.
    """

    def __init__(
        self,
        queue: InMemoryJobQueue,
        handler: JobHandler,
        *,
        poll_interval: float = 0.1,
    ) -> None:
        super().__init__(queue.name)
        self._queue = queue
        self._handler = handler
        self._poll_interval = poll_interval
        self._worker: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return bool(self._worker and self._worker.is_alive())

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                logger.debug("Worker already running; skipping start", extra={"queue": self.queue_name})
                return
            logger.info("Starting worker thread", extra={"queue": self.queue_name})
            self._stop_event.clear()
            self._worker = threading.Thread(
                target=self._run,
                name=f"job-worker-{self.queue_name}",
                daemon=True,
            )
            self._worker.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            worker = self._worker
            self._stop_event.set()
        if worker is not None:
            worker.join(timeout)
            logger.info("Worker thread stopped", extra={"queue": self.queue_name})

    def _run(self) -> None:
        asyncio.run(self.run_forever())

    async def run_forever(self) -> None:
        logger.info("Worker loop started", extra={"queue": self.queue_name})
        while not self._stop_event.is_set():
            processed = await self.process_next()
            if not processed:
                await asyncio.sleep(self._poll_interval)

    async def process_next(self) -> bool:
        """Run the oldest queued job, if any. Returns False when idle."""
        job = self._queue.pop_pending()
        if job is None:
            return False

        reporter = InMemoryProgressReporter(self._queue, job.job_id)
        logger.info("Processing job", extra={"queue": self.queue_name, "job_id": job.job_id})
        try:
            result = await self._handler(job.payload, reporter)
        except Exception as exc:
            logger.error(
                "Job failed",
                extra={"queue": self.queue_name, "job_id": job.job_id, "error": str(exc)},
                exc_info=True,
            )
            self._queue.mark_failed(job.job_id, str(exc))
        else:
            self._queue.mark_completed(job.job_id, result)
            logger.info("Finished job", extra={"queue": self.queue_name, "job_id": job.job_id})
        return True


class AnalysisJobTask(Task):
    """Base task class with failure logging."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            "Job task failed",
            extra={"task_name": self.name, "job_id": task_id, "error": str(exc)},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)


def register_celery_task(queue_name: str, handler: JobHandler, *, app: Celery = celery_app) -> Task:
    """Register ``handler`` as the Celery task that serves ``queue_name``."""

    @app.task(bind=True, base=AnalysisJobTask, name=task_name_for(queue_name))
    def run_job(self, payload: Any) -> Any:
        logger.info("Processing job", extra={"queue": queue_name, "job_id": self.request.id})
        result = asyncio.run(handler(payload, CeleryProgressReporter(self)))
        logger.info("Finished job", extra={"queue": queue_name, "job_id": self.request.id})
        return result

    return run_job


class CeleryJobWorker(JobWorker):
    """Runs a Celery worker bound to one queue; ``start`` blocks."""

    def __init__(
        self,
        queue_name: str,
        task: Task,
        *,
        app: Celery = celery_app,
        concurrency: int = 4,
        loglevel: str = "INFO",
    ) -> None:
        super().__init__(queue_name)
        self.task = task
        self._app = app
        self._concurrency = concurrency
        self._loglevel = loglevel
        self.hostname = f"{queue_name}-worker@{socket.gethostname()}"
        self._started = False

    def start(self) -> None:
        logger.info(
            "Starting Celery worker",
            extra={"queue": self.queue_name, "concurrency": self._concurrency},
        )
        self._started = True
        self._app.worker_main(
            argv=[
                "worker",
                f"--queues={self.queue_name}",
                f"--concurrency={self._concurrency}",
                f"--loglevel={self._loglevel}",
                f"--hostname={self.hostname}",
            ]
        )

    def stop(self) -> None:
        # Only shut down a worker this process started
        if not self._started:
            return
        self._app.control.shutdown(destination=[self.hostname])
        self._started = False


_WORKERS: Dict[str, JobWorker] = {}
_WORKERS_LOCK = threading.Lock()


def register_worker(queue_name: str, handler: JobHandler) -> JobWorker:
    """Bind ``handler`` to ``queue_name`` for the active backend.

    In-memory workers start polling immediately. Celery workers only
    register their task here; a worker process calls ``start()``.
    Registering the same queue twice returns the existing worker.
    """
    with _WORKERS_LOCK:
        existing = _WORKERS.get(queue_name)
        if existing is not None:
            logger.warning("Worker already registered", extra={"queue": queue_name})
            return existing

        settings = get_settings()
        worker: JobWorker
        if get_queue_backend() is QueueBackend.CELERY:
            task = register_celery_task(queue_name, handler)
            worker = CeleryJobWorker(
                queue_name,
                task,
                concurrency=settings.jobs.concurrency,
                loglevel=settings.log_level,
            )
        else:
            worker = InMemoryJobWorker(
                in_memory_queue(queue_name),
                handler,
                poll_interval=settings.jobs.poll_interval,
            )
            worker.start()
        _WORKERS[queue_name] = worker
        return worker


def stop_workers() -> None:
    """Stop and forget every registered worker."""
    with _WORKERS_LOCK:
        workers = list(_WORKERS.values())
        _WORKERS.clear()
    for worker in workers:
        worker.stop()
