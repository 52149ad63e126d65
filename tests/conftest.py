from __future__ import annotations

from typing import Generator

import pytest

_ENV_VARS = [
    "QUEUE_REDIS_URL", "JOBS__REDIS_URL", "CACHE_REDIS_URL", "CACHE__REDIS_URL",
    "JOB_POLL_INTERVAL", "JOB_MAX_RETAINED", "CELERY_CONCURRENCY",
    "ANALYSIS_API_BASE", "ANALYSIS_API_KEY", "SUMMARY_MAX_CHUNK_CHARS",
    "RETRY_MAX_ATTEMPTS", "RETRY_BASE_DELAY", "EMBEDDING_API_URL",
    "EMBEDDING_API_KEY", "GEMINI_API_URL", "GEMINI_API_KEY", "LOG_LEVEL",
]


def _clear_process_state() -> None:
    from legalclarity.cache import get_summary_cache
    from legalclarity.config import get_settings
    from legalclarity.jobs import get_queue_backend, stop_workers
    from legalclarity.jobs import queue as queue_module
    from legalclarity.tasks import get_analysis_client, get_qa_queue

    stop_workers()
    queue_module._IN_MEMORY_QUEUES.clear()
    for cached in (get_settings, get_queue_backend, get_summary_cache, get_qa_queue, get_analysis_client):
        cached.cache_clear()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Run every test without .env files, Redis URLs or process-wide singletons."""
    monkeypatch.chdir(tmp_path)
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    _clear_process_state()
    yield
    _clear_process_state()


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep


@pytest.fixture
def fake_client():
    from fakes.analysis import FakeAnalysisClient

    return FakeAnalysisClient()
