from .progress import (
    CeleryProgressReporter,
    InMemoryProgressReporter,
    NullProgressReporter,
    ProgressReporter,
)
from .queue import (
    CeleryJobQueue,
    InMemoryJobQueue,
    JobQueue,
    JobQueueUnavailable,
    QueueBackend,
    create_queue,
    get_queue_backend,
    in_memory_queue,
)
from .worker import (
    CeleryJobWorker,
    InMemoryJobWorker,
    JobHandler,
    JobWorker,
    register_worker,
    stop_workers,
)

__all__ = [
    "CeleryJobQueue",
    "CeleryJobWorker",
    "CeleryProgressReporter",
    "InMemoryJobQueue",
    "InMemoryJobWorker",
    "InMemoryProgressReporter",
    "JobHandler",
    "JobQueue",
    "JobQueueUnavailable",
    "JobWorker",
    "NullProgressReporter",
    "ProgressReporter",
    "QueueBackend",
    "create_queue",
    "get_queue_backend",
    "in_memory_queue",
    "register_worker",
    "stop_workers",
]
