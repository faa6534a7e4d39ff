"""Batch consumer: one orchestrator call per delivered message."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Protocol

from transcribe_worker.config import logger as default_logger

from .actions import QueuedMessage


class Envelope(Protocol):
    body: Mapping[str, Any]

    def acknowledge(self) -> None:
        ...

    def request_redelivery(self) -> None:
        ...


class Batch(Protocol):
    messages: Iterable[Envelope]


class MessageHandler(Protocol):
    def handle(self, job_id: str, action: Any, payload: Optional[Mapping[str, Any]] = None) -> Any:
        ...


@dataclass(frozen=True)
class BatchReport:
    total: int = 0
    acknowledged: int = 0
    redelivered: int = 0


def _process_message(
    message: Envelope,
    orchestrator: MessageHandler,
    log: logging.Logger,
) -> bool:
    try:
        return _dispatch(message, orchestrator, log)
    except Exception as exc:  # noqa: BLE001 - a message must never break its siblings
        log.exception("Unexpected error handling queue message", extra={"error": str(exc)})
        _settle(message.request_redelivery, None, log)
        return False


def _dispatch(
    message: Envelope,
    orchestrator: MessageHandler,
    log: logging.Logger,
) -> bool:
    body = message.body
    try:
        queued = QueuedMessage.from_mapping(body)
    except ValueError as exc:
        # no job to attach the failure to and nothing a retry could fix
        log.error(
            "Dropping malformed queue message",
            extra={"body": repr(body)[:500], "error": str(exc)},
        )
        _settle(message.acknowledge, None, log)
        return True

    try:
        orchestrator.handle(queued.job_id, queued.action, body)
    except Exception as exc:  # noqa: BLE001 - a message must never break its siblings
        log.error(
            "Failed to process queue message",
            extra={"job_id": queued.job_id, "action": queued.action, "error": str(exc)},
        )
        _settle(message.request_redelivery, queued.job_id, log)
        return False
    _settle(message.acknowledge, queued.job_id, log)
    return True


def _settle(operation, job_id: Any, log: logging.Logger) -> None:
    try:
        operation()
    except Exception:  # noqa: BLE001 - the queue will redeliver an unsettled message
        log.exception("Failed to settle queue message", extra={"job_id": job_id})


def handle_batch(
    batch: Batch,
    orchestrator: MessageHandler,
    *,
    max_workers: int = 1,
    logger: Optional[logging.Logger] = None,
) -> BatchReport:
    """Process every message of ``batch`` independently.

    Successful messages are acknowledged, failed ones are handed back for
    redelivery. With ``max_workers > 1`` messages run on a thread pool.
    """
    log = logger or default_logger
    messages = list(batch.messages or [])
    if not messages:
        return BatchReport()

    if max_workers > 1 and len(messages) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(messages))) as pool:
            outcomes = list(pool.map(lambda m: _process_message(m, orchestrator, log), messages))
    else:
        outcomes = [_process_message(message, orchestrator, log) for message in messages]

    acknowledged = sum(1 for ok in outcomes if ok)
    report = BatchReport(
        total=len(messages),
        acknowledged=acknowledged,
        redelivered=len(messages) - acknowledged,
    )
    log.info(
        "Batch processing completed",
        extra={
            "total": report.total,
            "acknowledged": report.acknowledged,
            "redelivered": report.redelivered,
        },
    )
    return report


__all__ = ["Batch", "BatchReport", "Envelope", "MessageHandler", "handle_batch"]
