"""Progress reporting capabilities handed to job handlers."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from celery import Task

from ..celery_config import PROGRESS_STATE
from ..status import JobProgress

if TYPE_CHECKING:
    from .queue import InMemoryJobQueue

logger = logging.getLogger(__name__)


class ProgressReporter(ABC):
    """Narrow side channel a running handler uses to publish progress."""

    @abstractmethod
    def update(self, **fields: Any) -> None:
        """Merge progress fields into the job's status record."""


class NullProgressReporter(ProgressReporter):
    """Discards updates; used when a pipeline runs outside a job."""

    def update(self, **fields: Any) -> None:
        return None


class InMemoryProgressReporter(ProgressReporter):
    def __init__(self, queue: "InMemoryJobQueue", job_id: str) -> None:
        self._queue = queue
        self._job_id = job_id

    def update(self, **fields: Any) -> None:
        self._queue.update_progress(self._job_id, **fields)


class CeleryProgressReporter(ProgressReporter):
    """Publishes merged progress as custom Celery task state."""

    def __init__(self, task: Task) -> None:
        self._task = task
        self._progress = JobProgress()

    def update(self, **fields: Any) -> None:
        self._progress.merge(**fields)
        self._task.update_state(state=PROGRESS_STATE, meta=self._progress.to_dict())
