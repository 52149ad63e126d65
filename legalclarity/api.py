from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, status

from . import __version__
from .cache import get_summary_cache
from .config import get_settings
from .jobs import JobQueue, JobQueueUnavailable, get_queue_backend, stop_workers
from .logging import setup_logging
from .models import HealthResponse, JobStatusResponse, JobSubmitted, QAJobRequest
from .tasks import get_qa_queue, register_qa_worker

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    """Health check endpoint."""
    cache = get_summary_cache()
    return HealthResponse(
        status="ok",
        queue_backend=get_queue_backend().value,
        cache_backend="redis" if cache.is_networked else "memory",
    )


@router.post(
    "/api/qa-jobs",
    response_model=JobSubmitted,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
)
def submit_qa_job(request: QAJobRequest, queue: JobQueue = Depends(get_qa_queue)):
    try:
        job_id = queue.submit(request.model_dump(mode="json"))
    except JobQueueUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.info("Accepted QA job", extra={"job_id": job_id})
    return JobSubmitted(job_id=job_id)


@router.get(
    "/api/qa-jobs/{job_id}",
    response_model=JobStatusResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
def get_qa_job(job_id: str, queue: JobQueue = Depends(get_qa_queue)):
    try:
        record = queue.get_status(job_id)
    except JobQueueUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobStatusResponse.from_record(record)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)
    backend = get_queue_backend()
    logger.info("Starting API", extra={"queue_backend": backend.value})
    # In-memory jobs are only drained by a worker in this process
    register_qa_worker()
    try:
        yield
    finally:
        stop_workers()
        logger.info("API stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Legal Clarity Jobs", version=__version__, lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()
