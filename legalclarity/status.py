"""
Job status tracking for Legal Clarity background jobs.

Provides the status enum and the job record shared by both queue
backends, so callers see the same shape whether jobs run on Celery
or in the in-process fallback queue.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional


class JobStatus(str, Enum):
    """Job execution status."""

    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    NOT_FOUND = "not_found"

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) status."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobProgress:
    """Incremental progress published by a running job."""

    current_document: Optional[int] = None
    total_documents: Optional[int] = None
    current_chunk: Optional[int] = None
    total_chunks: Optional[int] = None
    completed_summaries: list[dict[str, Any]] = field(default_factory=list)

    def merge(self, **updates: Any) -> None:
        """Merge progress fields; unknown field names raise ``TypeError``."""
        known = {f.name for f in fields(self)}
        unknown = set(updates) - known
        if unknown:
            raise TypeError(f"Unknown progress fields: {', '.join(sorted(unknown))}")
        for name, value in updates.items():
            setattr(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Optional["JobProgress"]:
        if not data:
            return None
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class JobRecord:
    """Status record of a submitted job.

    ``result`` is only ever set on completed jobs and ``error`` only on
    failed ones; the transition helpers below keep that invariant.
    """

    job_id: str
    status: JobStatus
    queue: Optional[str] = None
    payload: Any = None
    result: Any = None
    error: Optional[str] = None
    progress: Optional[JobProgress] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    @classmethod
    def queued(cls, job_id: str, queue: str, payload: Any, *, now: float | None = None) -> "JobRecord":
        ts = time.time() if now is None else now
        return cls(
            job_id=job_id,
            status=JobStatus.QUEUED,
            queue=queue,
            payload=payload,
            created_at=ts,
            updated_at=ts,
        )

    @classmethod
    def not_found(cls, job_id: str) -> "JobRecord":
        return cls(job_id=job_id, status=JobStatus.NOT_FOUND)

    def mark_active(self, *, now: float | None = None) -> None:
        self.status = JobStatus.ACTIVE
        self.updated_at = time.time() if now is None else now

    def mark_completed(self, result: Any, *, now: float | None = None) -> None:
        self.status = JobStatus.COMPLETED
        self.result = result
        self.error = None
        self.updated_at = time.time() if now is None else now

    def mark_failed(self, error: str, *, now: float | None = None) -> None:
        self.status = JobStatus.FAILED
        self.error = error or "Unknown error"
        self.result = None
        self.updated_at = time.time() if now is None else now

    def update_progress(self, *, now: float | None = None, **updates: Any) -> None:
        if self.progress is None:
            self.progress = JobProgress()
        self.progress.merge(**updates)
        self.updated_at = time.time() if now is None else now

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Absent fields are omitted so a completed job never carries an
        ``error`` key and a failed job never carries a ``result`` key.
        """
        data: dict[str, Any] = {"job_id": self.job_id, "status": self.status.value}
        if self.status is JobStatus.COMPLETED:
            data["result"] = self.result
        if self.status is JobStatus.FAILED:
            data["error"] = self.error
        if self.progress is not None:
            data["progress"] = self.progress.to_dict()
        if self.created_at is not None:
            data["created_at"] = self.created_at
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at
        return data
