"""Outbound side of the job queue."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional, Protocol

from transcribe_worker.config import logger

from .actions import JobAction


class MessageSink(Protocol):
    def send(self, body: dict[str, Any]) -> Any:
        ...


def _timestamp() -> str:
    now = dt.datetime.now(dt.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JobDispatcher:
    """Builds queue messages and hands them to a queue."""

    def __init__(self, queue: MessageSink) -> None:
        self.queue = queue

    def send_job(self, job_id: str, action: JobAction | str, **extra: Any) -> dict[str, Any]:
        """Send ``{jobId, action, timestamp, **extra}`` and return the body."""
        action_value = action.value if isinstance(action, JobAction) else action
        message: dict[str, Any] = {
            "jobId": job_id,
            "action": action_value,
            "timestamp": _timestamp(),
        }
        message.update(extra)
        self.queue.send(message)
        logger.info("Job message sent", extra={"job_id": job_id, "action": action_value})
        return message

    def send_process_video(self, job_id: str) -> dict[str, Any]:
        return self.send_job(job_id, JobAction.PROCESS_VIDEO)

    def send_transcribe_audio(self, job_id: str, audio_url: str) -> dict[str, Any]:
        return self.send_job(job_id, JobAction.TRANSCRIBE_AUDIO, audioUrl=audio_url)

    def send_recaption(
        self,
        job_id: str,
        staging_id: str,
        language: Optional[str] = None,
    ) -> dict[str, Any]:
        extra: dict[str, Any] = {"stagingId": staging_id}
        if language:
            extra["language"] = language
        return self.send_job(job_id, JobAction.RECAPTION, **extra)


__all__ = ["JobDispatcher", "MessageSink"]
