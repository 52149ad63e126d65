"""
Celery configuration for the durable job backend.

Only used when ``QUEUE_REDIS_URL`` is configured; creating the app does
not open a broker connection, so importing this module is safe in
fallback mode.
"""

from __future__ import annotations

from celery import Celery

from .config import get_settings

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
TASK_NAME_PREFIX = "legalclarity.jobs."
PROGRESS_STATE = "PROGRESS"


def task_name_for(queue_name: str) -> str:
    """Celery task name that serves ``queue_name``."""
    return f"{TASK_NAME_PREFIX}{queue_name}"


_settings = get_settings()
_redis_url = _settings.jobs.redis_url or DEFAULT_REDIS_URL

celery_app = Celery(
    "legalclarity",
    broker=_redis_url,
    backend=_redis_url,
)

celery_app.conf.update(
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task result settings
    result_expires=_settings.jobs.result_ttl,
    result_extended=True,

    # Acknowledge after the handler returns; redelivery is at-least-once
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=_settings.jobs.concurrency,
    task_time_limit=_settings.jobs.task_time_limit,
    task_soft_time_limit=max(1, _settings.jobs.task_time_limit - 30),

    # Monitoring
    task_track_started=True,
    task_send_sent_event=True,
    worker_send_task_events=True,
)

__all__ = ["celery_app", "task_name_for", "PROGRESS_STATE"]
