"""Explicit transition table for job statuses."""

from __future__ import annotations

from typing import Mapping, FrozenSet, Union

from transcribe_worker.db.models import JobStatus

from .errors import InvalidJobTransition

ALLOWED_TRANSITIONS: Mapping[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    # processing -> processing happens when an in-flight job is redelivered
    JobStatus.PROCESSING: frozenset(
        {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}
    ),
    # leaving a terminal status starts a new attempt (retry or recaption)
    JobStatus.COMPLETED: frozenset({JobStatus.PROCESSING}),
    JobStatus.FAILED: frozenset({JobStatus.PROCESSING}),
}

StatusLike = Union[JobStatus, str]


def coerce_status(value: StatusLike) -> JobStatus:
    if isinstance(value, JobStatus):
        return value
    return JobStatus(str(value))


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    return coerce_status(target) in ALLOWED_TRANSITIONS[coerce_status(current)]


def validate_transition(job_id: str, current: StatusLike, target: StatusLike) -> JobStatus:
    """Return the target status or raise ``InvalidJobTransition``."""
    target_status = coerce_status(target)
    current_status = coerce_status(current)
    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise InvalidJobTransition(job_id, current_status.value, target_status.value)
    return target_status


__all__ = ["ALLOWED_TRANSITIONS", "can_transition", "coerce_status", "validate_transition"]
