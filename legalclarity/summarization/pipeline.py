"""
Chunked summarization pipeline.

Each document in the combined content is chunked, each chunk is
summarized through the retry wrapper (consulting the summary cache
first), and multi-chunk documents get one combining call over their
chunk summaries. Documents and chunks are processed strictly in order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..analysis import AnalysisClient, SummarizeRequest
from ..cache import SummaryCache, fingerprint
from ..config import SummarizationSettings
from ..jobs.progress import NullProgressReporter, ProgressReporter
from ..models import AnswerResult, DocumentSummaryResult
from ..retry import with_retry
from .chunker import DEFAULT_MAX_CHARS, DocumentChunker
from .documents import DocumentSegment, parse_document_content

logger = logging.getLogger(__name__)

NO_CONTENT = "No content available."
NO_SUMMARY = "No summary could be generated."
COMBINE_FAILED_NOTE = "Could not generate a combined summary, showing chunk summaries instead."
SUMMARY_FEEDBACK = (
    "Detailed summaries of all documents are provided below. "
    "Large documents are chunked and summarized in parts for accuracy."
)


class DocumentState(str, Enum):
    PENDING = "pending"
    CHUNKING = "chunking"
    SUMMARIZING_CHUNKS = "summarizing_chunks"
    COMBINING = "combining"
    DONE = "done"


@dataclass
class DocumentSummary:
    """Summary of one document plus any per-chunk failure notes."""

    name: str
    summary: str = ""
    chunk_count: int = 0
    errors: List[str] = field(default_factory=list)
    state: DocumentState = DocumentState.PENDING

    def advance(self, state: DocumentState) -> None:
        logger.debug(
            "Document state change",
            extra={"document": self.name, "from": self.state.value, "to": state.value},
        )
        self.state = state

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "summary": self.summary,
            "chunkCount": self.chunk_count,
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data

    def to_result(self) -> DocumentSummaryResult:
        return DocumentSummaryResult(
            name=self.name,
            summary=self.summary,
            chunk_count=self.chunk_count,
            errors=list(self.errors) or None,
        )


def follow_up_suggestions(summaries: List[DocumentSummary]) -> List[str]:
    if len(summaries) == 1:
        name = summaries[0].name
        return [
            f"Would you like to see a detailed breakdown of sections or clauses in '{name}'?",
            f"Do you want to search for a specific term or clause in '{name}'?",
        ]
    if len(summaries) > 1:
        return [
            "Would you like to see a detailed breakdown of a specific document?",
            "Do you want to compare two documents on a specific topic?",
            "Would you like to search for a specific clause or keyword across all documents?",
        ]
    return []


def format_summaries(summaries: List[DocumentSummary]) -> str:
    """Render per-document summaries as the final answer text."""
    blocks = []
    for doc in summaries:
        out = f"Document: '{doc.name}'"
        if doc.chunk_count > 1:
            out += f" (summarized in {doc.chunk_count} parts)"
        out += "\n- " + doc.summary.replace("\n", "\n- ")
        if doc.errors:
            out += f"\n[Note: {' '.join(doc.errors)}]"
        blocks.append(out)
    return "\n\n".join(blocks)


class SummarizationPipeline:
    """Summarizes every document in a combined content string."""

    def __init__(
        self,
        client: AnalysisClient,
        cache: Optional[SummaryCache] = None,
        *,
        max_chunk_chars: int = DEFAULT_MAX_CHARS,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._cache = cache
        self._chunker = DocumentChunker(max_chunk_chars)
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        client: AnalysisClient,
        cache: Optional[SummaryCache],
        settings: SummarizationSettings,
    ) -> "SummarizationPipeline":
        return cls(
            client,
            cache,
            max_chunk_chars=settings.max_chunk_chars,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
        )

    async def run(
        self,
        document_content: str,
        *,
        language: Optional[str] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> AnswerResult:
        documents = parse_document_content(document_content)
        summaries = await self.summarize_documents(documents, language=language, progress=progress)
        return AnswerResult(
            answer=format_summaries(summaries),
            feedback=SUMMARY_FEEDBACK,
            citations=[],
            follow_up_questions=follow_up_suggestions(summaries),
            document_summaries=[doc.to_result() for doc in summaries],
        )

    async def summarize_documents(
        self,
        documents: List[DocumentSegment],
        *,
        language: Optional[str] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> List[DocumentSummary]:
        progress = progress or NullProgressReporter()
        total = len(documents)
        completed: List[DocumentSummary] = []

        for index, document in enumerate(documents, start=1):
            logger.info(
                "Summarizing document",
                extra={"document": document.name, "position": index, "total_documents": total},
            )
            summary = await self._summarize_document(
                document,
                language=language,
                on_chunk=lambda chunk_no, chunk_total: progress.update(
                    current_document=index,
                    total_documents=total,
                    current_chunk=chunk_no,
                    total_chunks=chunk_total,
                    completed_summaries=[doc.to_dict() for doc in completed],
                ),
            )
            completed.append(summary)
            progress.update(
                current_document=index,
                total_documents=total,
                current_chunk=None,
                total_chunks=None,
                completed_summaries=[doc.to_dict() for doc in completed],
            )

        return completed

    async def _summarize_document(
        self,
        document: DocumentSegment,
        *,
        language: Optional[str],
        on_chunk: Callable[[int, int], None],
    ) -> DocumentSummary:
        result = DocumentSummary(name=document.name)
        if not document.text:
            result.summary = NO_CONTENT
            result.advance(DocumentState.DONE)
            return result

        result.advance(DocumentState.CHUNKING)
        chunks = list(self._chunker.chunk(document.text))
        result.chunk_count = len(chunks)

        result.advance(DocumentState.SUMMARIZING_CHUNKS)
        chunk_summaries: List[str] = []
        for number, chunk in enumerate(chunks, start=1):
            try:
                chunk_summaries.append(await self.summarize_text(chunk, language=language))
            except Exception as exc:
                logger.error(
                    "Chunk summarization failed",
                    extra={"document": document.name, "chunk": number, "error": str(exc)},
                )
                result.errors.append(f"Chunk {number}: Could not summarize due to an error: {exc}")
            on_chunk(number, len(chunks))

        if len(chunk_summaries) == 1:
            result.summary = chunk_summaries[0]
        elif chunk_summaries:
            result.advance(DocumentState.COMBINING)
            joined = "\n\n".join(chunk_summaries)
            try:
                result.summary = await self.summarize_text(joined, language=language)
            except Exception as exc:
                logger.error(
                    "Combined summary failed",
                    extra={"document": document.name, "error": str(exc)},
                )
                result.summary = joined
                result.errors.append(COMBINE_FAILED_NOTE)
        else:
            result.summary = NO_SUMMARY

        result.advance(DocumentState.DONE)
        return result

    async def summarize_text(self, text: str, *, language: Optional[str] = None) -> str:
        """Summarize ``text`` once, reusing a cached summary when present."""
        key = f"{language or 'default'}:{fingerprint(text)}"
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                logger.debug("Summary cache hit", extra={"key": key})
                return cached

        output = await with_retry(
            lambda: self._client.summarize(SummarizeRequest(document_content=text, language=language)),
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            sleep=self._sleep,
        )

        if self._cache is not None:
            await self._cache.set(key, output.summary)
        return output.summary
