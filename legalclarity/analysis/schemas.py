"""Typed requests and responses for the hosted analysis service."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ConversationTurn(BaseModel):
    """A previously asked question and the answer that was given."""

    question: str
    answer: str


class SummarizeRequest(BaseModel):
    document_content: str
    language: Optional[str] = None


class SummarizeOutput(BaseModel):
    summary: str = Field(..., min_length=1)


class AnswerQuestionRequest(BaseModel):
    document_content: str
    question: str
    history: List[ConversationTurn] = Field(default_factory=list)
    language: Optional[str] = None


class AnswerQuestionOutput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    answer: str
    feedback: str = ""
    citations: List[str] = Field(default_factory=list)
    follow_up_questions: List[str] = Field(default_factory=list)
    coverage_status: Optional[Literal["yes", "no", "not mentioned"]] = None
    summary: Optional[str] = None


class HumanizeRequest(BaseModel):
    raw_text: str


class HumanizeOutput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    humanized_text: str
