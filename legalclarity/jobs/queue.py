"""Named job queues with a durable Celery backend and an in-process fallback.

The backend is chosen once per process: Celery on Redis when
``QUEUE_REDIS_URL`` is set, otherwise the in-memory queue. Callers only
see :class:`JobQueue` and :class:`~legalclarity.status.JobRecord`.
"""
from __future__ import annotations

import copy
import json
import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Deque, Dict, List, Optional

import redis
from celery import Celery
from celery.result import AsyncResult
from redis.exceptions import RedisError

from ..celery_config import PROGRESS_STATE, celery_app, task_name_for
from ..config import JobQueueSettings, get_settings
from ..status import JobProgress, JobRecord, JobStatus

logger = logging.getLogger(__name__)

JOB_MARKER_PREFIX = "legalclarity:job:"

_CELERY_STATES: Dict[str, JobStatus] = {
    "PENDING": JobStatus.QUEUED,
    "RECEIVED": JobStatus.QUEUED,
    "STARTED": JobStatus.ACTIVE,
    PROGRESS_STATE: JobStatus.ACTIVE,
    "RETRY": JobStatus.ACTIVE,
    "SUCCESS": JobStatus.COMPLETED,
    "FAILURE": JobStatus.FAILED,
    "REVOKED": JobStatus.FAILED,
}


class QueueBackend(str, Enum):
    CELERY = "celery"
    IN_MEMORY = "in_memory"


class JobQueueUnavailable(RuntimeError):
    """The durable backend could not be reached."""


@lru_cache
def get_queue_backend() -> QueueBackend:
    """Select the queue backend once for the whole process."""
    settings = get_settings().jobs
    if settings.is_durable:
        logger.info("Using Celery job queue backend")
        return QueueBackend.CELERY
    logger.info("QUEUE_REDIS_URL not set; using in-memory job queue")
    return QueueBackend.IN_MEMORY


def _new_job_id() -> str:
    return uuid.uuid4().hex


class JobQueue(ABC):
    """A named FIFO of jobs whose status can be polled by id."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def submit(self, payload: Any, *, job_id: Optional[str] = None) -> str:
        """Enqueue ``payload`` and return its job id."""

    @abstractmethod
    def get_status(self, job_id: str) -> JobRecord:
        """Return a snapshot of the job; unknown ids report ``not_found``."""


@dataclass
class PendingJob:
    job_id: str
    payload: Any


class InMemoryJobQueue(JobQueue):
    """Process-local queue used when no durable backend is configured.

    Jobs do not survive a restart. Finished records are kept until
    cleared, or until ``max_retained`` newer finished jobs push them out.
    """

    def __init__(
        self,
        name: str,
        *,
        max_retained: Optional[int] = None,
        id_factory: Callable[[], str] = _new_job_id,
    ) -> None:
        super().__init__(name)
        if max_retained is not None and max_retained < 1:
            raise ValueError("max_retained must be >= 1")
        self._max_retained = max_retained
        self._id_factory = id_factory
        self._jobs: Dict[str, JobRecord] = {}
        self._pending: Deque[PendingJob] = deque()
        self._lock = threading.Lock()

    def submit(self, payload: Any, *, job_id: Optional[str] = None) -> str:
        with self._lock:
            job_id = job_id or self._id_factory()
            existing = self._jobs.get(job_id)
            if existing is not None and not existing.status.is_terminal():
                raise ValueError(f"Job {job_id} is already {existing.status.value}")
            # A reused id replaces the old record; drop any entry left behind by a cleared job.
            self._jobs.pop(job_id, None)
            self._pending = deque(job for job in self._pending if job.job_id != job_id)
            self._jobs[job_id] = JobRecord.queued(job_id, self.name, payload)
            self._pending.append(PendingJob(job_id=job_id, payload=payload))
        logger.debug("Queued job", extra={"queue": self.name, "job_id": job_id})
        return job_id

    def get_status(self, job_id: str) -> JobRecord:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return JobRecord.not_found(job_id)
            return copy.deepcopy(record)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pop_pending(self) -> Optional[PendingJob]:
        """Take the oldest queued job and mark it active."""
        with self._lock:
            while self._pending:
                job = self._pending.popleft()
                record = self._jobs.get(job.job_id)
                if record is None:
                    logger.info("Skipping cleared job", extra={"queue": self.name, "job_id": job.job_id})
                    continue
                record.mark_active()
                return job
            return None

    def update_progress(self, job_id: str, **fields: Any) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is not None and record.status is JobStatus.ACTIVE:
                record.update_progress(**fields)

    def mark_completed(self, job_id: str, result: Any) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return
            record.mark_completed(result)
            self._evict_finished()

    def mark_failed(self, job_id: str, error: str) -> None:
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return
            record.mark_failed(error)
            self._evict_finished()

    def list_jobs(self) -> List[JobRecord]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._jobs.values()]

    def clear_job(self, job_id: str) -> bool:
        """Forget a job; returns False for unknown ids."""
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def _evict_finished(self) -> None:
        # Caller holds the lock. Records are kept in submission order.
        if self._max_retained is None:
            return
        finished = [job_id for job_id, record in self._jobs.items() if record.status.is_terminal()]
        excess = len(finished) - self._max_retained
        for job_id in finished[: max(0, excess)]:
            del self._jobs[job_id]


class CeleryJobQueue(JobQueue):
    """Durable queue: one Celery task name and broker queue per job queue.

    A small marker key is written at submission so an id that was never
    submitted can be told apart from a job still waiting in the broker.
    """

    def __init__(
        self,
        name: str,
        redis_client: redis.Redis,
        *,
        app: Celery = celery_app,
        marker_ttl: Optional[int] = None,
    ) -> None:
        super().__init__(name)
        self._redis = redis_client
        self._app = app
        self._marker_ttl = marker_ttl

    @classmethod
    def from_settings(cls, name: str, settings: JobQueueSettings) -> "CeleryJobQueue":
        if not settings.redis_url:
            raise ValueError("QUEUE_REDIS_URL is required for the Celery job queue")
        client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        return cls(name, client, marker_ttl=settings.result_ttl)

    @staticmethod
    def marker_key(job_id: str) -> str:
        return f"{JOB_MARKER_PREFIX}{job_id}"

    def submit(self, payload: Any, *, job_id: Optional[str] = None) -> str:
        job_id = job_id or _new_job_id()
        marker = json.dumps({"queue": self.name, "created_at": time.time()})
        try:
            self._redis.set(self.marker_key(job_id), marker, ex=self._marker_ttl)
            self._app.send_task(
                task_name_for(self.name),
                args=[payload],
                task_id=job_id,
                queue=self.name,
            )
        except (RedisError, OSError) as exc:
            logger.error("Failed to submit job", extra={"queue": self.name, "error": str(exc)})
            raise JobQueueUnavailable(f"Job queue '{self.name}' is unavailable: {exc}") from exc
        logger.info("Queued job", extra={"queue": self.name, "job_id": job_id})
        return job_id

    def get_status(self, job_id: str) -> JobRecord:
        try:
            raw_marker = self._redis.get(self.marker_key(job_id))
            result = AsyncResult(job_id, app=self._app)
            state = result.state
            info = result.info
            date_done = result.date_done
        except Exception as exc:
            logger.error("Failed to read job status", extra={"job_id": job_id, "error": str(exc)})
            raise JobQueueUnavailable(f"Job queue '{self.name}' is unavailable: {exc}") from exc

        if raw_marker is None and state == "PENDING":
            return JobRecord.not_found(job_id)

        marker: Dict[str, Any] = json.loads(raw_marker) if raw_marker else {}
        created_at = marker.get("created_at")
        record = JobRecord(
            job_id=job_id,
            status=_CELERY_STATES.get(state, JobStatus.ACTIVE),
            queue=marker.get("queue", self.name),
            created_at=created_at,
            updated_at=self._timestamp(date_done) or created_at,
        )

        if record.status is JobStatus.COMPLETED:
            record.result = info
        elif record.status is JobStatus.FAILED:
            record.error = (str(info) if info is not None else "") or state
        elif state == PROGRESS_STATE and isinstance(info, dict):
            record.progress = JobProgress.from_dict(info)
        return record

    @staticmethod
    def _timestamp(value: Any) -> Optional[float]:
        if isinstance(value, datetime):
            return value.timestamp()
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value).timestamp()
            except ValueError:
                return None
        return None


_IN_MEMORY_QUEUES: Dict[str, InMemoryJobQueue] = {}
_REGISTRY_LOCK = threading.Lock()


def in_memory_queue(name: str) -> InMemoryJobQueue:
    """Return the process-wide in-memory queue called ``name``."""
    with _REGISTRY_LOCK:
        queue = _IN_MEMORY_QUEUES.get(name)
        if queue is None:
            queue = InMemoryJobQueue(name, max_retained=get_settings().jobs.max_retained)
            _IN_MEMORY_QUEUES[name] = queue
        return queue


def create_queue(name: str) -> JobQueue:
    """Return a handle on the queue called ``name`` for the active backend."""
    if get_queue_backend() is QueueBackend.CELERY:
        return CeleryJobQueue.from_settings(name, get_settings().jobs)
    return in_memory_queue(name)
