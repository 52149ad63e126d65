"""Job handlers and submission helpers for the ``qa`` queue."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .analysis import AnalysisClient, ConversationTurn, TGIAnalysisClient
from .cache import SummaryCache, get_summary_cache
from .config import get_settings
from .jobs import JobQueue, JobWorker, ProgressReporter, create_queue, register_worker
from .models import QAJobRequest
from .question_answering import QuestionAnsweringPipeline
from .status import JobRecord
from .summarization import SummarizationPipeline

logger = logging.getLogger(__name__)

QA_QUEUE = "qa"

HistoryItem = Union[ConversationTurn, Mapping[str, str]]


@lru_cache
def get_analysis_client() -> AnalysisClient:
    return TGIAnalysisClient.from_settings(get_settings().analysis)


@lru_cache
def get_qa_queue() -> JobQueue:
    return create_queue(QA_QUEUE)


def build_qa_pipeline(
    client: Optional[AnalysisClient] = None,
    cache: Optional[SummaryCache] = None,
) -> QuestionAnsweringPipeline:
    settings = get_settings().summarization
    client = client or get_analysis_client()
    summarizer = SummarizationPipeline.from_settings(client, cache or get_summary_cache(), settings)
    return QuestionAnsweringPipeline(
        client,
        summarizer,
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
    )


async def run_qa_job(payload: Dict[str, Any], progress: ProgressReporter) -> Dict[str, Any]:
    """Handler registered for the ``qa`` queue."""
    request = QAJobRequest.model_validate(payload)
    pipeline = build_qa_pipeline()
    result = await pipeline.run(request, progress=progress)
    return result.to_payload()


def submit_qa_job(
    document_content: str,
    question: str,
    history: Optional[Iterable[HistoryItem]] = None,
    language: str = "en",
    *,
    queue: Optional[JobQueue] = None,
) -> str:
    """Validate and enqueue a question; returns the job id immediately."""
    request = QAJobRequest(
        document_content=document_content,
        question=question,
        history=list(history or []),
        language=language,
    )
    job_id = (queue or get_qa_queue()).submit(request.model_dump(mode="json"))
    logger.info("Submitted QA job", extra={"job_id": job_id, "language": language})
    return job_id


def get_qa_job_status(job_id: str, *, queue: Optional[JobQueue] = None) -> JobRecord:
    return (queue or get_qa_queue()).get_status(job_id)


def register_qa_worker() -> JobWorker:
    return register_worker(QA_QUEUE, run_qa_job)
