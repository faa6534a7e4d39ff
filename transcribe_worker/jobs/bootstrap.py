"""Wire the orchestrator and the queue from configuration."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from transcribe_worker.config import TRANSCRIBE_QUEUE_NAME, logger
from transcribe_worker.media.staging import MediaStagingClient
from transcribe_worker.transcribe.client import TranscriptionClient

from .dispatcher import JobDispatcher
from .pipeline import PipelineOrchestrator
from .queue import SqlQueue
from .store import JobStore


def build_orchestrator(
    *,
    session_factory: Optional[sessionmaker] = None,
    transcriber: Optional[TranscriptionClient] = None,
    staging: Optional[MediaStagingClient] = None,
    log: Optional[logging.Logger] = None,
) -> PipelineOrchestrator:
    """Return an orchestrator using configured vendor clients unless overridden."""
    orchestrator = PipelineOrchestrator(
        store=JobStore(session_factory),
        transcriber=transcriber or TranscriptionClient(),
        staging=staging or MediaStagingClient(),
        logger=log,
    )
    logger.debug(
        "Orchestrator constructed",
        extra={
            "transcriber": type(orchestrator.transcriber).__name__,
            "staging": type(orchestrator.staging).__name__,
        },
    )
    return orchestrator


def build_queue(
    name: str = TRANSCRIBE_QUEUE_NAME,
    *,
    session_factory: Optional[sessionmaker] = None,
) -> SqlQueue:
    return SqlQueue(name, session_factory=session_factory)


def build_dispatcher(queue: Optional[SqlQueue] = None) -> JobDispatcher:
    return JobDispatcher(queue or build_queue())


__all__ = ["build_dispatcher", "build_orchestrator", "build_queue"]
