"""Error taxonomy shared by the pipeline, the store and vendor clients."""

from __future__ import annotations

from typing import Optional


class JobError(Exception):
    """Base class for failures raised while processing a job."""

    #: Whether redelivering the originating message can possibly help.
    retryable = True


class JobNotFound(JobError, LookupError):
    """Raised when the job id is absent from the store."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class UnknownAction(JobError):
    """Raised when a queued message names an action nobody handles."""

    retryable = False

    def __init__(self, action: object) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


class UpstreamError(JobError):
    """Failure reported by an external vendor (transcription or staging)."""

    service = "upstream"

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TranscriptionError(UpstreamError):
    service = "transcription"


class StagingError(UpstreamError):
    service = "staging"


class CleanupError(JobError):
    """Best-effort cleanup failed. Logged only, never a job failure."""

    def __init__(self, resource_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to delete staging resource {resource_id}: {cause}")
        self.resource_id = resource_id
        self.cause = cause


class InvalidJobTransition(JobError):
    """Raised by the store when a status write breaks the job state machine."""

    retryable = False

    def __init__(self, job_id: str, current: str, target: str) -> None:
        super().__init__(f"Job {job_id} cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


__all__ = [
    "CleanupError",
    "InvalidJobTransition",
    "JobError",
    "JobNotFound",
    "StagingError",
    "TranscriptionError",
    "UnknownAction",
    "UpstreamError",
]
