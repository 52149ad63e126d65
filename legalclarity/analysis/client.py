from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from copy import deepcopy
from typing import Any, Dict, Optional, Type, TypeVar

from huggingface_hub import AsyncInferenceClient
from pydantic import BaseModel

from ..config import AnalysisSettings
from .parser import ResponseParser
from .prompts import PromptBuilder
from .schemas import (
    AnswerQuestionOutput,
    AnswerQuestionRequest,
    HumanizeOutput,
    HumanizeRequest,
    SummarizeOutput,
    SummarizeRequest,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class AnalysisClient(ABC):
    """One call to the hosted text-generation service per method.

    Implementations raise on failure; retry policy belongs to callers.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Client identifier (e.g., 'tgi')"""

    @abstractmethod
    async def summarize(self, request: SummarizeRequest) -> SummarizeOutput:
        """Summarize a document or a concatenation of partial summaries."""

    @abstractmethod
    async def answer_question(self, request: AnswerQuestionRequest) -> AnswerQuestionOutput:
        """Answer a question strictly from the given document."""

    @abstractmethod
    async def humanize(self, request: HumanizeRequest) -> HumanizeOutput:
        """Rewrite text in plain language."""


class TGIAnalysisClient(AnalysisClient):
    """Hugging Face Text Generation Inference (TGI) client.

    Requests structured JSON output through TGI grammars and validates the
    response with pydantic.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        max_new_tokens: int = 1024,
        temperature: float = 0.2,
        prompt_builder: Optional[PromptBuilder] = None,
        response_parser: Optional[ResponseParser] = None,
    ):
        """Initialize TGI client.

        Args:
            base_url: TGI endpoint URL (without /v1 suffix)
            token: Optional API token
            max_new_tokens: Generation budget per call
            temperature: Sampling temperature
        """
        self._base_url = base_url
        self._token = token
        self._max_new_tokens = max_new_tokens
        self._temperature = temperature
        self._prompts = prompt_builder or PromptBuilder()
        self._parser = response_parser or ResponseParser()

    @classmethod
    def from_settings(cls, settings: AnalysisSettings) -> "TGIAnalysisClient":
        return cls(
            base_url=settings.resolved_base_url(),
            token=settings.resolved_token(),
            max_new_tokens=settings.max_new_tokens,
            temperature=settings.temperature,
        )

    @property
    def name(self) -> str:
        return "tgi"

    async def summarize(self, request: SummarizeRequest) -> SummarizeOutput:
        prompt = self._prompts.build_summarize(request)
        return await self._generate(prompt, SummarizeOutput, label="Summary")

    async def answer_question(self, request: AnswerQuestionRequest) -> AnswerQuestionOutput:
        prompt = self._prompts.build_answer(request)
        return await self._generate(prompt, AnswerQuestionOutput, label="Answer")

    async def humanize(self, request: HumanizeRequest) -> HumanizeOutput:
        prompt = self._prompts.build_humanize(request)
        return await self._generate(prompt, HumanizeOutput, label="Humanize")

    async def _generate(self, prompt: str, model: Type[ModelT], *, label: str) -> ModelT:
        params: Dict[str, Any] = {
            "max_new_tokens": self._max_new_tokens,
            "temperature": self._temperature,
            "return_full_text": False,
        }
        grammar = self.build_grammar(model)
        if grammar:
            params["grammar"] = grammar

        async with AsyncInferenceClient(self._base_url, token=self._token) as client:
            try:
                raw = await client.text_generation(prompt, **params)
            except TypeError as exc:
                # Older TGI deployments reject grammar parameters
                if "grammar" not in str(exc) or "grammar" not in params:
                    raise
                logger.warning("TGI rejected grammar; retrying without it", extra={"label": label})
                params.pop("grammar")
                raw = await client.text_generation(prompt, **params)

        return self._parser.parse(self._coerce_generated_text(raw), model, label=label)

    def _coerce_generated_text(self, raw: Any) -> str:
        """Extract text from various TGI response formats."""
        if raw is None:
            return ""
        if isinstance(raw, str):
            return raw
        text = getattr(raw, "generated_text", None)
        if isinstance(text, str):
            return text
        if isinstance(raw, dict):
            for key in ("generated_text", "text", "content"):
                value = raw.get(key)
                if isinstance(value, str):
                    return value
        return str(raw)

    @staticmethod
    def build_grammar(output_schema: Type[BaseModel]) -> Optional[Dict[str, Any]]:
        """Build a JSON grammar for structured output from a pydantic model."""
        try:
            schema = deepcopy(output_schema.model_json_schema(by_alias=True))
        except Exception:
            logger.warning("Could not build JSON schema grammar", exc_info=True)
            return None
        schema["additionalProperties"] = False
        return {"type": "json", "value": schema}
