"""Typed accessor over persisted transcription jobs."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from sqlalchemy.orm import sessionmaker

from transcribe_worker.config import logger
from transcribe_worker.db.database import session_scope
from transcribe_worker.db.models import JobStatus, TranscriptionJob, utcnow

from .errors import JobNotFound
from .states import coerce_status, validate_transition


@dataclass(frozen=True)
class Job:
    """Detached snapshot of a job document."""

    id: str
    status: JobStatus
    source_url: Optional[str] = None
    language: Optional[str] = None
    options: dict[str, Any] = field(default_factory=dict)
    progress: Optional[dict[str, Any]] = None
    result: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_row(cls, row: TranscriptionJob) -> "Job":
        return cls(
            id=row.id,
            status=coerce_status(row.status),
            source_url=row.source_url,
            language=row.language,
            options=dict(row.options or {}),
            progress=dict(row.progress) if row.progress else None,
            result=dict(row.result) if row.result is not None else None,
            metadata=dict(row.result_metadata) if row.result_metadata is not None else None,
            error=dict(row.error) if row.error else None,
        )


def describe_error(error: Union[BaseException, str, None]) -> dict[str, Any]:
    """Serialize an exception into the stored error shape."""
    if isinstance(error, BaseException):
        error_type = type(error).__name__
        message = str(error) or "Unknown error"
    else:
        error_type = "Error"
        message = error or "Unknown error"
    return {
        "type": error_type,
        "message": message,
        "timestamp": utcnow().isoformat() + "Z",
    }


class JobStore:
    """Reads and single-write mutations of job documents.

    Each mutation runs in its own short transaction; concurrent writers are
    resolved last-writer-wins. Status writes go through the transition table.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def create_job(
        self,
        *,
        source_url: str,
        job_id: Optional[str] = None,
        language: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Job:
        row = TranscriptionJob(
            id=job_id or uuid.uuid4().hex,
            status=JobStatus.QUEUED.value,
            source_url=source_url,
            language=language,
            options=dict(options or {}),
            progress={"stage": "queued", "percentage": 0, "message": "Waiting in queue"},
            created_at=utcnow(),
        )
        with session_scope(self._session_factory) as session:
            session.add(row)
            session.flush()
            job = Job.from_row(row)
        logger.info("Job created", extra={"job_id": job.id})
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with session_scope(self._session_factory) as session:
            row = session.get(TranscriptionJob, job_id)
            return Job.from_row(row) if row else None

    def update_job_status(self, job_id: str, status: Union[JobStatus, str]) -> Job:
        now = utcnow()
        with session_scope(self._session_factory) as session:
            row = session.get(TranscriptionJob, job_id)
            if not row:
                raise JobNotFound(job_id)
            previous = coerce_status(row.status)
            target = validate_transition(job_id, previous, status)
            row.status = target.value
            row.updated_at = now
            if previous.is_terminal:
                # new attempt on a finished job
                row.error = None
                row.finished_at = None
                row.started_at = now
            elif target is JobStatus.PROCESSING and not row.started_at:
                row.started_at = now
            if target.is_terminal:
                row.finished_at = now
            session.flush()
            job = Job.from_row(row)
        if previous.is_terminal:
            logger.info(
                "Job reopened",
                extra={"job_id": job_id, "previous_status": previous.value},
            )
        else:
            logger.debug("Job status updated", extra={"job_id": job_id, "status": job.status.value})
        return job

    def update_job_progress(
        self,
        job_id: str,
        stage: str,
        percentage: Optional[int] = None,
        message: Optional[str] = None,
    ) -> Job:
        with session_scope(self._session_factory) as session:
            row = session.get(TranscriptionJob, job_id)
            if not row:
                raise JobNotFound(job_id)
            row.progress = {"stage": stage, "percentage": percentage, "message": message}
            row.updated_at = utcnow()
            session.flush()
            return Job.from_row(row)

    def set_job_result(
        self,
        job_id: str,
        result: Mapping[str, Any],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Job:
        now = utcnow()
        with session_scope(self._session_factory) as session:
            row = session.get(TranscriptionJob, job_id)
            if not row:
                raise JobNotFound(job_id)
            target = validate_transition(job_id, row.status, JobStatus.COMPLETED)
            row.status = target.value
            row.result = dict(result)
            row.result_metadata = dict(metadata or {})
            row.error = None
            row.progress = {
                "stage": "completed",
                "percentage": 100,
                "message": "Transcription completed",
            }
            row.updated_at = now
            row.finished_at = now
            session.flush()
            job = Job.from_row(row)
        logger.info("Job completed", extra={"job_id": job_id})
        return job

    def set_job_error(
        self,
        job_id: str,
        error: Union[BaseException, str, None],
    ) -> Optional[Job]:
        details = describe_error(error)
        now = utcnow()
        with session_scope(self._session_factory) as session:
            row = session.get(TranscriptionJob, job_id)
            if not row:
                logger.warning("Fail skipped; job missing", extra={"job_id": job_id})
                return None
            target = validate_transition(job_id, row.status, JobStatus.FAILED)
            row.status = target.value
            row.error = details
            row.progress = {
                "stage": "failed",
                "percentage": 0,
                "message": f"Error: {details['message']}",
            }
            row.updated_at = now
            row.finished_at = now
            session.flush()
            job = Job.from_row(row)
        logger.error("Job failed", extra={"job_id": job_id, "error": details["message"]})
        return job


__all__ = ["Job", "JobStore", "describe_error"]
