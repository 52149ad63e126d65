"""Tests for the chunked summarization pipeline."""

import pytest

from fakes.analysis import FakeAnalysisClient, TransientError
from legalclarity.cache import SummaryCache, fingerprint
from legalclarity.jobs import InMemoryJobQueue, InMemoryProgressReporter, ProgressReporter
from legalclarity.summarization import DocumentSegment, SummarizationPipeline, format_document_content


class RecordingProgress(ProgressReporter):
    def __init__(self):
        self.updates = []

    def update(self, **fields):
        self.updates.append(fields)


def _big_document(paragraphs: int = 15, size: int = 1998) -> str:
    return "\n\n".join(chr(ord("a") + i) * size for i in range(paragraphs))


def _content(*docs: tuple) -> str:
    return format_document_content(DocumentSegment(name, text) for name, text in docs)


def _pipeline(client, *, cache=None, **kwargs) -> SummarizationPipeline:
    return SummarizationPipeline(client, cache or SummaryCache(), **kwargs)


class TestSummarizationPipeline:
    """Test SummarizationPipeline.run."""

    @pytest.mark.asyncio
    async def test_thirty_thousand_char_document(self):
        """Three chunk summaries plus one combining call."""
        client = FakeAnalysisClient(summaries=["part one", "part two", "part three", "combined"])
        progress = RecordingProgress()

        result = await _pipeline(client).run(_content(("big.pdf", _big_document())), progress=progress)

        assert len(client.summarize_calls) == 4
        assert client.summarize_calls[3].document_content == "part one\n\npart two\n\npart three"
        assert result.answer == "Document: 'big.pdf' (summarized in 3 parts)\n- combined"
        assert result.document_summaries[0].chunk_count == 3

        chunk_updates = [u for u in progress.updates if u.get("current_chunk") is not None]
        assert [(u["current_chunk"], u["total_chunks"]) for u in chunk_updates] == [(1, 3), (2, 3), (3, 3)]
        assert progress.updates[-1]["completed_summaries"][0]["name"] == "big.pdf"
        assert len(progress.updates) == 4

    @pytest.mark.asyncio
    async def test_single_chunk_skips_combining(self):
        client = FakeAnalysisClient(summaries=["Rent is due monthly.\nDeposit is two months."])
        result = await _pipeline(client).run(_content(("lease.pdf", "The Tenant shall pay rent.")))

        assert len(client.summarize_calls) == 1
        assert result.answer == "Document: 'lease.pdf'\n- Rent is due monthly.\n- Deposit is two months."
        assert result.citations == []
        assert result.feedback.startswith("Detailed summaries")

    @pytest.mark.asyncio
    async def test_empty_document(self):
        client = FakeAnalysisClient()
        result = await _pipeline(client).run(_content(("blank.pdf", "")))

        assert client.summarize_calls == []
        assert result.document_summaries[0].summary == "No content available."
        assert result.document_summaries[0].chunk_count == 0

    @pytest.mark.asyncio
    async def test_document_progress_clears_previous_chunk_counts(self):
        client = FakeAnalysisClient(summaries=["part one", "part two", "part three", "combined"])
        queue = InMemoryJobQueue("summaries")
        job_id = queue.submit({})
        queue.pop_pending()

        await _pipeline(client).run(
            _content(("big.pdf", _big_document()), ("blank.pdf", "")),
            progress=InMemoryProgressReporter(queue, job_id),
        )

        progress = queue.get_status(job_id).progress
        assert progress.current_document == 2
        assert progress.total_documents == 2
        assert progress.current_chunk is None
        assert progress.total_chunks is None

    @pytest.mark.asyncio
    async def test_chunk_failure_is_noted_and_processing_continues(self):
        client = FakeAnalysisClient(summaries=["s1", RuntimeError("boom"), "s3", "combined"])
        result = await _pipeline(client).run(_content(("big.pdf", _big_document())))

        assert len(client.summarize_calls) == 4
        assert client.summarize_calls[3].document_content == "s1\n\ns3"
        summary = result.document_summaries[0]
        assert summary.summary == "combined"
        assert summary.errors == ["Chunk 2: Could not summarize due to an error: boom"]
        assert result.answer.endswith("[Note: Chunk 2: Could not summarize due to an error: boom]")

    @pytest.mark.asyncio
    async def test_combining_failure_falls_back_to_chunk_summaries(self):
        client = FakeAnalysisClient(summaries=["s1", "s2", "s3", ValueError("too long")])
        result = await _pipeline(client).run(_content(("big.pdf", _big_document())))

        summary = result.document_summaries[0]
        assert summary.summary == "s1\n\ns2\n\ns3"
        assert summary.errors == ["Could not generate a combined summary, showing chunk summaries instead."]

    @pytest.mark.asyncio
    async def test_all_chunks_fail(self):
        client = FakeAnalysisClient(summaries=[RuntimeError("x")] * 3)
        result = await _pipeline(client).run(_content(("big.pdf", _big_document())))

        summary = result.document_summaries[0]
        assert summary.summary == "No summary could be generated."
        assert len(summary.errors) == 3
        assert len(client.summarize_calls) == 3

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, no_sleep):
        client = FakeAnalysisClient(summaries=[TransientError(), "recovered"])
        result = await _pipeline(client, sleep=no_sleep).run(_content(("a.pdf", "text")))

        assert result.document_summaries[0].summary == "recovered"
        assert no_sleep.delays == [1.0]
        assert len(client.summarize_calls) == 2

    @pytest.mark.asyncio
    async def test_cached_summary_skips_remote_call(self):
        cache = SummaryCache()
        await cache.set(f"en:{fingerprint('Clause text.')}", "from cache")
        client = FakeAnalysisClient()

        result = await _pipeline(client, cache=cache).run(_content(("a.pdf", "Clause text.")), language="en")

        assert client.summarize_calls == []
        assert result.document_summaries[0].summary == "from cache"

    @pytest.mark.asyncio
    async def test_results_are_cached_per_language(self):
        cache = SummaryCache()
        client = FakeAnalysisClient(summaries=["english", "french"])
        pipeline = _pipeline(client, cache=cache)
        content = _content(("a.pdf", "Clause text."))

        await pipeline.run(content, language="en")
        await pipeline.run(content, language="en")
        french = await pipeline.run(content, language="fr")

        assert len(client.summarize_calls) == 2
        assert client.summarize_calls[1].language == "fr"
        assert french.document_summaries[0].summary == "french"

    @pytest.mark.asyncio
    async def test_follow_ups_for_one_document(self):
        result = await _pipeline(FakeAnalysisClient()).run(_content(("lease.pdf", "text")))
        assert len(result.follow_up_questions) == 2
        assert "'lease.pdf'" in result.follow_up_questions[0]

    @pytest.mark.asyncio
    async def test_multiple_documents_in_order(self):
        client = FakeAnalysisClient(summaries=["first", "second"])
        progress = RecordingProgress()
        result = await _pipeline(client).run(
            _content(("a.pdf", "alpha"), ("b.pdf", "beta")),
            progress=progress,
        )

        assert result.answer == "Document: 'a.pdf'\n- first\n\nDocument: 'b.pdf'\n- second"
        assert len(result.follow_up_questions) == 3
        doc_updates = [u for u in progress.updates if u.get("current_chunk") is None]
        assert [(u["current_document"], u["total_documents"]) for u in doc_updates] == [(1, 2), (2, 2)]
        assert len(doc_updates[1]["completed_summaries"]) == 2

    @pytest.mark.asyncio
    async def test_unmarked_content(self):
        client = FakeAnalysisClient(summaries=["plain"])
        result = await _pipeline(client).run("Pasted contract text.")
        assert result.answer == "Document: 'Document'\n- plain"

    @pytest.mark.asyncio
    async def test_result_payload_uses_camel_case(self):
        result = await _pipeline(FakeAnalysisClient()).run(_content(("a.pdf", "text")))
        payload = result.to_payload()
        assert set(payload) == {"answer", "feedback", "citations", "followUpQuestions", "documentSummaries"}
        assert payload["documentSummaries"][0]["chunkCount"] == 1
