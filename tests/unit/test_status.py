"""Tests for job status records."""

import pytest

from legalclarity.status import JobProgress, JobRecord, JobStatus


class TestJobStatus:
    """Test JobStatus enum."""

    def test_terminal_statuses(self):
        assert JobStatus.COMPLETED.is_terminal()
        assert JobStatus.FAILED.is_terminal()
        assert not JobStatus.QUEUED.is_terminal()
        assert not JobStatus.ACTIVE.is_terminal()
        assert not JobStatus.NOT_FOUND.is_terminal()

    def test_values(self):
        assert [s.value for s in JobStatus] == ["queued", "active", "completed", "failed", "not_found"]


class TestJobProgress:
    """Test JobProgress merging."""

    def test_merge_keeps_unrelated_fields(self):
        progress = JobProgress()
        progress.merge(current_document=1, total_documents=2)
        progress.merge(current_chunk=3)
        assert progress.to_dict() == {
            "current_document": 1,
            "total_documents": 2,
            "current_chunk": 3,
            "total_chunks": None,
            "completed_summaries": [],
        }

    def test_merge_rejects_unknown_fields(self):
        with pytest.raises(TypeError):
            JobProgress().merge(percent=50)

    def test_from_dict_ignores_unknown_keys(self):
        progress = JobProgress.from_dict({"current_document": 2, "extra": True})
        assert progress == JobProgress(current_document=2)
        assert JobProgress.from_dict(None) is None


class TestJobRecord:
    """Test JobRecord transitions."""

    def test_queued(self):
        record = JobRecord.queued("j1", "qa", {"question": "q"}, now=10.0)
        assert record.status is JobStatus.QUEUED
        assert record.created_at == record.updated_at == 10.0
        assert record.to_dict() == {
            "job_id": "j1",
            "status": "queued",
            "created_at": 10.0,
            "updated_at": 10.0,
        }

    def test_completed_has_result_and_no_error(self):
        record = JobRecord.queued("j1", "qa", {})
        record.mark_active()
        record.mark_completed({"answer": "yes"})
        data = record.to_dict()
        assert data["status"] == "completed"
        assert data["result"] == {"answer": "yes"}
        assert "error" not in data

    def test_failed_has_error_and_no_result(self):
        record = JobRecord.queued("j1", "qa", {})
        record.mark_completed("stale")
        record.mark_failed("boom")
        data = record.to_dict()
        assert data["error"] == "boom"
        assert "result" not in data
        assert record.result is None

    def test_failed_without_message(self):
        record = JobRecord.queued("j1", "qa", {})
        record.mark_failed("")
        assert record.error == "Unknown error"

    def test_progress_in_dict(self):
        record = JobRecord.queued("j1", "qa", {})
        record.mark_active()
        record.update_progress(current_document=1, total_documents=3)
        assert record.to_dict()["progress"]["total_documents"] == 3

    def test_not_found(self):
        assert JobRecord.not_found("nope").to_dict() == {"job_id": "nope", "status": "not_found"}
