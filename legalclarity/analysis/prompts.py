"""Prompt building for legal document analysis."""
from __future__ import annotations

from textwrap import dedent

from .schemas import AnswerQuestionRequest, HumanizeRequest, SummarizeRequest


class PromptBuilder:
    """Builds prompts for summarization, question answering and humanization."""

    def _language_rule(self, language: str | None) -> str:
        if not language:
            return ""
        return (
            f"You MUST write your entire response in the following language: {language}. "
            "Direct quotes stay in the original language of the document.\n"
        )

    def build_summarize(self, request: SummarizeRequest) -> str:
        return dedent(
            """
            You are a world-class legal assistant. Review the following legal document and provide a concise summary.
            The summary should highlight the key terms, obligations, and potential risks. Do not use markdown or special formatting.
            {language_rule}
            Respond in valid JSON only, shaped as {{"summary": "<summary>"}}.

            <document>
            {document}
            </document>
            """
        ).strip().format(
            language_rule=self._language_rule(request.language),
            document=request.document_content,
        )

    def build_answer(self, request: AnswerQuestionRequest) -> str:
        history = "\n".join(
            f"Q: {turn.question}\nA: {turn.answer}" for turn in request.history
        ) or "(none)"
        return dedent(
            """
            You are a highly experienced legal policy assistant. Answer the user's question using ONLY the provided document.
            Do not use external knowledge and do not infer anything that is not explicitly stated.
            If the answer is not in the document, say that it cannot be found in the provided document.
            {language_rule}
            Respond in valid JSON only with the fields "answer", "feedback", "citations" (supporting quotes),
            "followUpQuestions" and optionally "coverageStatus" ("yes", "no" or "not mentioned") and "summary".

            <history>
            {history}
            </history>

            <question>
            {question}
            </question>

            <document>
            {document}
            </document>
            """
        ).strip().format(
            language_rule=self._language_rule(request.language),
            history=history,
            question=request.question,
            document=request.document_content,
        )

    def build_humanize(self, request: HumanizeRequest) -> str:
        return dedent(
            """
            Rewrite the following text so it reads naturally and plainly for a non-lawyer, keeping every fact unchanged.
            Respond in valid JSON only, shaped as {{"humanizedText": "<text>"}}.

            <text>
            {text}
            </text>
            """
        ).strip().format(text=request.raw_text)
