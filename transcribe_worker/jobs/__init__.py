"""Job queue consumer and transcription pipeline."""

from .actions import JobAction, QueuedMessage
from .consumer import BatchReport, handle_batch
from .dispatcher import JobDispatcher
from .errors import (
    CleanupError,
    InvalidJobTransition,
    JobError,
    JobNotFound,
    StagingError,
    TranscriptionError,
    UnknownAction,
    UpstreamError,
)
from .pipeline import CleanupOutcome, PipelineOrchestrator, PipelineResult, count_words
from .progress import JobNotifier
from .queue import DeliveryEnvelope, MessageBatch, SqlQueue
from .states import ALLOWED_TRANSITIONS, can_transition, validate_transition
from .store import Job, JobStore

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BatchReport",
    "CleanupError",
    "CleanupOutcome",
    "DeliveryEnvelope",
    "InvalidJobTransition",
    "Job",
    "JobAction",
    "JobDispatcher",
    "JobError",
    "JobNotFound",
    "JobNotifier",
    "JobStore",
    "MessageBatch",
    "PipelineOrchestrator",
    "PipelineResult",
    "QueuedMessage",
    "SqlQueue",
    "StagingError",
    "TranscriptionError",
    "UnknownAction",
    "UpstreamError",
    "can_transition",
    "count_words",
    "handle_batch",
    "validate_transition",
]
