"""Pydantic models for job payloads, job results and the HTTP API.

Results are serialized with camelCase keys, the shape the web client
reads; requests accept either camelCase or snake_case.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .analysis.schemas import ConversationTurn
from .status import JobRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QAJobRequest(_CamelModel):
    """A question about one or more uploaded documents."""

    document_content: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    history: List[ConversationTurn] = Field(default_factory=list)
    language: str = "en"

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be blank")
        return value


class DocumentSummaryResult(_CamelModel):
    name: str
    summary: str
    chunk_count: int
    errors: Optional[List[str]] = None


class DocumentAnswer(_CamelModel):
    name: str
    answer: str
    feedback: str = ""
    citations: List[str] = Field(default_factory=list)
    follow_up_questions: List[str] = Field(default_factory=list)
    status: Literal["answered", "not_found", "error"]


class AnswerResult(_CamelModel):
    """Final result of a question-answering job."""

    answer: str
    feedback: str = ""
    citations: List[str] = Field(default_factory=list)
    follow_up_questions: List[str] = Field(default_factory=list)
    per_document: Optional[List[DocumentAnswer]] = None
    document_summaries: Optional[List[DocumentSummaryResult]] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-compatible dict stored as the job result."""
        return self.model_dump(by_alias=True, exclude_none=True)


class JobSubmitted(_CamelModel):
    job_id: str


class JobProgressModel(_CamelModel):
    current_document: Optional[int] = None
    total_documents: Optional[int] = None
    current_chunk: Optional[int] = None
    total_chunks: Optional[int] = None
    completed_summaries: List[Dict[str, Any]] = Field(default_factory=list)


class JobStatusResponse(_CamelModel):
    job_id: str
    status: Literal["queued", "active", "completed", "failed", "not_found"]
    result: Optional[Any] = None
    error: Optional[str] = None
    progress: Optional[JobProgressModel] = None

    @classmethod
    def from_record(cls, record: JobRecord) -> "JobStatusResponse":
        data = record.to_dict()
        return cls(
            job_id=record.job_id,
            status=record.status.value,
            result=data.get("result"),
            error=data.get("error"),
            progress=data.get("progress"),
        )


class HealthResponse(BaseModel):
    status: str
    queue_backend: str
    cache_backend: str
