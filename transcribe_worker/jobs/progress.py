"""Utilities for reporting job progress."""

from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .store import JobStore


class JobNotifier:
    """Writes progress markers to the store and logs each stage."""

    def __init__(self, job_id: str, store: "JobStore", logger: logging.Logger) -> None:
        self.job_id = job_id
        self.store = store
        self.logger = logger
        self._last_stage: Optional[str] = None

    def stage(self, stage: str, percentage: Optional[int] = None, message: Optional[str] = None) -> None:
        if percentage is not None:
            percentage = max(0, min(100, int(percentage)))
        self.store.update_job_progress(self.job_id, stage, percentage, message)
        self._last_stage = stage
        self.logger.info(
            "Job stage",
            extra={"job_id": self.job_id, "stage": stage, "progress": percentage, "detail": message},
        )

    @property
    def last_stage(self) -> Optional[str]:
        return self._last_stage


__all__ = ["JobNotifier"]
