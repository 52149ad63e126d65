"""Tests for the question answering pipeline."""

import pytest

from fakes.analysis import FakeAnalysisClient
from legalclarity.analysis import AnswerQuestionOutput, ConversationTurn
from legalclarity.cache import SummaryCache
from legalclarity.jobs import ProgressReporter
from legalclarity.models import QAJobRequest
from legalclarity.question_answering import QuestionAnsweringPipeline, is_broad_summary_question
from legalclarity.summarization import DocumentSegment, SummarizationPipeline, format_document_content


class RecordingProgress(ProgressReporter):
    def __init__(self):
        self.updates = []

    def update(self, **fields):
        self.updates.append(fields)


def _pipeline(client) -> QuestionAnsweringPipeline:
    return QuestionAnsweringPipeline(client, SummarizationPipeline(client, SummaryCache()))


def _request(question: str, *docs: tuple, **kwargs) -> QAJobRequest:
    content = format_document_content(DocumentSegment(name, text) for name, text in docs)
    return QAJobRequest(document_content=content, question=question, **kwargs)


class TestIsBroadSummaryQuestion:
    """Test broad summary detection."""

    @pytest.mark.parametrize(
        "question",
        [
            "Summarize all documents",
            "Can you give me a summary?",
            "Please summarise this lease",
            "Give me an overview of these files",
            "What do all documents say about termination?",
            "Explain everything",
        ],
    )
    def test_broad(self, question):
        assert is_broad_summary_question(question)

    @pytest.mark.parametrize(
        "question",
        [
            "What is the termination notice period?",
            "Who are the parties?",
            "Is theft covered?",
        ],
    )
    def test_specific(self, question):
        assert not is_broad_summary_question(question)


class TestQuestionAnsweringPipeline:
    """Test QuestionAnsweringPipeline.run."""

    @pytest.mark.asyncio
    async def test_broad_question_routes_to_summaries(self):
        client = FakeAnalysisClient(summaries=["lease summary"])
        result = await _pipeline(client).run(_request("Summarize all documents", ("lease.pdf", "text")))

        assert client.answer_calls == []
        assert result.answer == "Document: 'lease.pdf'\n- lease summary"
        assert result.document_summaries is not None
        assert result.per_document is None

    @pytest.mark.asyncio
    async def test_answers_each_document_in_order(self):
        client = FakeAnalysisClient()
        progress = RecordingProgress()
        result = await _pipeline(client).run(
            _request("Who pays rent?", ("a.pdf", "alpha"), ("b.pdf", "beta")),
            progress=progress,
        )

        assert [c.document_content for c in client.answer_calls] == ["alpha", "beta"]
        assert len(client.humanize_calls) == 4
        assert [d.status for d in result.per_document] == ["answered", "answered"]
        assert result.answer == (
            "Document: 'a.pdf'\n- plain: answer about Who pays rent?\n\n"
            "Document: 'b.pdf'\n- plain: answer about Who pays rent?"
        )
        assert result.feedback == "Document: 'a.pdf'\nplain: looks fine\n\nDocument: 'b.pdf'\nplain: looks fine"
        assert result.per_document[0].citations == ["clause 1"]
        assert result.follow_up_questions == []
        assert progress.updates == [
            {"current_document": 1, "total_documents": 2},
            {"current_document": 2, "total_documents": 2},
        ]

    @pytest.mark.asyncio
    async def test_request_fields_are_forwarded(self):
        client = FakeAnalysisClient()
        history = [ConversationTurn(question="Q1", answer="A1")]
        await _pipeline(client).run(_request("Who pays?", ("a.pdf", "alpha"), history=history, language="de"))

        call = client.answer_calls[0]
        assert call.history == history
        assert call.language == "de"

    @pytest.mark.asyncio
    async def test_not_found_answer(self):
        client = FakeAnalysisClient(
            answers=[
                AnswerQuestionOutput(
                    answer="This information cannot be found in the provided document.",
                    feedback="No feedback available.",
                )
            ],
            humanize_prefix="",
        )
        result = await _pipeline(client).run(_request("Is theft covered?", ("a.pdf", "alpha")))

        assert result.per_document[0].status == "not_found"
        assert result.feedback == ""

    @pytest.mark.asyncio
    async def test_empty_document(self):
        client = FakeAnalysisClient()
        result = await _pipeline(client).run(_request("Who pays?", ("blank.pdf", "")))

        doc = result.per_document[0]
        assert doc.status == "not_found"
        assert doc.answer == "No content available."
        assert client.answer_calls == []

    @pytest.mark.asyncio
    async def test_error_in_one_document_does_not_stop_others(self):
        client = FakeAnalysisClient(answers=[RuntimeError("model crashed")])
        result = await _pipeline(client).run(_request("Who pays?", ("a.pdf", "alpha"), ("b.pdf", "beta")))

        assert [d.status for d in result.per_document] == ["error", "answered"]
        assert result.per_document[0].answer == "An error occurred while processing this document."

    @pytest.mark.asyncio
    async def test_humanize_failure_marks_error(self):
        client = FakeAnalysisClient(humanize_error=ValueError("bad output"))
        result = await _pipeline(client).run(_request("Who pays?", ("a.pdf", "alpha")))
        assert result.per_document[0].status == "error"

    @pytest.mark.asyncio
    async def test_blank_feedback_is_not_humanized(self):
        client = FakeAnalysisClient(answers=[AnswerQuestionOutput(answer="Yes.", feedback="")])
        result = await _pipeline(client).run(_request("Who pays?", ("a.pdf", "alpha")))

        assert [c.raw_text for c in client.humanize_calls] == ["Yes."]
        assert result.feedback == ""

    @pytest.mark.asyncio
    async def test_result_payload(self):
        result = await _pipeline(FakeAnalysisClient()).run(_request("Who pays?", ("a.pdf", "alpha")))
        payload = result.to_payload()
        assert payload["perDocument"][0]["followUpQuestions"] == ["what else?"]
        assert payload["perDocument"][0]["status"] == "answered"
