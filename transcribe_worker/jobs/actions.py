"""Queued message model and the closed set of pipeline actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .errors import UnknownAction


class JobAction(str, Enum):
    PROCESS_VIDEO = "process_video"
    TRANSCRIBE_AUDIO = "transcribe_audio"
    RECAPTION = "recaption"

    @classmethod
    def parse(cls, value: Any) -> "JobAction":
        """Return the action for ``value`` or raise ``UnknownAction``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownAction(value) from None


@dataclass
class QueuedMessage:
    """Wire body of a queue message: a pointer to a job plus an action."""

    job_id: str
    action: str
    timestamp: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "jobId": self.job_id,
            "action": self.action,
            "timestamp": self.timestamp,
        }
        body.update(self.extra)
        return body

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "QueuedMessage":
        if not isinstance(data, Mapping):
            raise ValueError(f"Queued message must be a mapping, got {type(data).__name__}.")
        if not data.get("jobId"):
            raise ValueError("Queued message must include 'jobId'.")
        extra = {
            key: value
            for key, value in data.items()
            if key not in ("jobId", "action", "timestamp")
        }
        return cls(
            job_id=str(data["jobId"]),
            action=str(data.get("action") or ""),
            timestamp=data.get("timestamp"),
            extra=extra,
        )


__all__ = ["JobAction", "QueuedMessage"]
