"""Question answering over one or more uploaded documents.

Broad summary questions ("summarize all documents") are routed to the
chunked summarization pipeline. Any other question is answered per
document, strictly in order, and each answer is rewritten in plain
language before being aggregated.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from .analysis import AnalysisClient, AnswerQuestionRequest, HumanizeRequest
from .jobs.progress import NullProgressReporter, ProgressReporter
from .models import AnswerResult, DocumentAnswer, QAJobRequest
from .retry import with_retry
from .summarization.documents import DocumentSegment, parse_document_content
from .summarization.pipeline import NO_CONTENT, SummarizationPipeline

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_FOUND_MARKER = "cannot be found in the provided document"
DOCUMENT_ERROR_ANSWER = "An error occurred while processing this document."
EMPTY_FEEDBACK = "no feedback available."

_ALL_DOCUMENTS_PHRASES = ("all documents", "all files", "these documents", "these files", "everything")
_SUMMARY_WORD = re.compile(r"summar(?:y|ize|ise|izing|ising|ization|isation|ing)\b")
_OVERVIEW_WORD = re.compile(r"overview|explain|content|state|cover|contain")
_MANY_DOCUMENTS = re.compile(r"(?:all|these|every|multiple) (?:documents|files)")


def is_broad_summary_question(question: str) -> bool:
    """True when ``question`` asks for a summary rather than a specific fact."""
    q = question.strip().lower()
    if any(phrase in q for phrase in _ALL_DOCUMENTS_PHRASES):
        return True
    if _SUMMARY_WORD.search(q):
        return True
    return bool(_OVERVIEW_WORD.search(q) and _MANY_DOCUMENTS.search(q))


class QuestionAnsweringPipeline:
    def __init__(
        self,
        client: AnalysisClient,
        summarizer: SummarizationPipeline,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._summarizer = summarizer
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    async def run(
        self,
        request: QAJobRequest,
        *,
        progress: Optional[ProgressReporter] = None,
    ) -> AnswerResult:
        if is_broad_summary_question(request.question):
            logger.info("Routing broad question to summarization", extra={"question": request.question})
            return await self._summarizer.run(
                request.document_content,
                language=request.language,
                progress=progress,
            )

        progress = progress or NullProgressReporter()
        documents = parse_document_content(request.document_content)
        answers: List[DocumentAnswer] = []
        for index, document in enumerate(documents, start=1):
            answers.append(await self.answer_document(document, request))
            progress.update(current_document=index, total_documents=len(documents))

        answer = "\n\n".join(f"Document: '{doc.name}'\n- {doc.answer}" for doc in answers)
        feedback = "\n\n".join(
            f"Document: '{doc.name}'\n{doc.feedback}"
            for doc in answers
            if doc.feedback.strip() and doc.feedback.strip().lower() != EMPTY_FEEDBACK
        )
        return AnswerResult(
            answer=answer,
            feedback=feedback,
            citations=[],
            follow_up_questions=[],
            per_document=answers,
        )

    async def answer_document(self, document: DocumentSegment, request: QAJobRequest) -> DocumentAnswer:
        """Answer the question against a single document; never raises."""
        if not document.text:
            return DocumentAnswer(name=document.name, answer=NO_CONTENT, status="not_found")

        try:
            output = await self._retry(
                lambda: self._client.answer_question(
                    AnswerQuestionRequest(
                        document_content=document.text,
                        question=request.question,
                        history=request.history,
                        language=request.language,
                    )
                )
            )
            answer, feedback = await asyncio.gather(
                self._humanize(output.answer),
                self._humanize(output.feedback),
            )
        except Exception as exc:
            logger.error(
                "Question answering failed for document",
                extra={"document": document.name, "error": str(exc)},
            )
            return DocumentAnswer(name=document.name, answer=DOCUMENT_ERROR_ANSWER, status="error")

        not_found = NOT_FOUND_MARKER in output.answer.strip().lower()
        return DocumentAnswer(
            name=document.name,
            answer=answer,
            feedback=feedback,
            citations=output.citations,
            follow_up_questions=output.follow_up_questions,
            status="not_found" if not_found else "answered",
        )

    async def _humanize(self, text: str) -> str:
        if not text.strip():
            return text
        output = await self._retry(lambda: self._client.humanize(HumanizeRequest(raw_text=text)))
        return output.humanized_text

    async def _retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(
            operation,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            sleep=self._sleep,
        )
