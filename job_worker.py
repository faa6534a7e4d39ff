"""CLI entry point for the transcription queue consumer."""

from __future__ import annotations

import argparse
import os
import signal
import sys
import time
from dataclasses import dataclass
from typing import Optional

from transcribe_worker.config import QUEUE_BATCH_SIZE, TRANSCRIBE_QUEUE_NAME, logger
from transcribe_worker.db import init_db
from transcribe_worker.jobs.bootstrap import build_orchestrator, build_queue
from transcribe_worker.jobs.consumer import handle_batch
from transcribe_worker.jobs.pipeline import PipelineOrchestrator
from transcribe_worker.jobs.queue import SqlQueue


class GracefulExit(SystemExit):
    """Sentinel exception used to break out of the worker loop."""


@dataclass(frozen=True)
class WorkerConfig:
    queue_name: str
    batch_size: int
    poll_interval: float
    max_workers: int = 1
    run_once: bool = False
    backoff_max: float = 30.0


class QueueWorker:
    """Long-running loop that drains queue batches through the orchestrator."""

    def __init__(
        self,
        config: WorkerConfig,
        queue: SqlQueue,
        orchestrator: PipelineOrchestrator,
    ) -> None:
        self.config = config
        self.queue = queue
        self.orchestrator = orchestrator
        self._shutdown = False
        self._busy = False
        self._batches = 0
        self._acknowledged = 0
        self._redelivered = 0
        self._start_monotonic = time.monotonic()
        self._current_backoff = max(config.poll_interval, 0.1)

    def start(self) -> None:
        logger.info(
            "Worker starting",
            extra={
                "queue": self.config.queue_name,
                "batch_size": self.config.batch_size,
                "max_workers": self.config.max_workers,
            },
        )
        self._start_monotonic = time.monotonic()
        try:
            while not self._shutdown:
                processed = self.run_once()
                if self.config.run_once:
                    break
                if not processed:
                    self._sleep()
        except GracefulExit:
            logger.info("Worker received shutdown request.")
        finally:
            self._log_summary()

    def run_once(self) -> int:
        """Receive and process one batch; return its size."""
        try:
            batch = self.queue.receive_batch(self.config.batch_size)
        except Exception:  # noqa: BLE001 - keep polling after transient DB errors
            logger.exception("Failed to receive batch", extra={"queue": self.config.queue_name})
            return 0
        if not batch.messages:
            return 0

        self._busy = True
        try:
            report = handle_batch(batch, self.orchestrator, max_workers=self.config.max_workers)
        finally:
            self._busy = False
        self._batches += 1
        self._acknowledged += report.acknowledged
        self._redelivered += report.redelivered
        self._reset_backoff()
        return report.total

    def _sleep(self) -> None:
        time.sleep(self._current_backoff)
        self._current_backoff = min(
            self._current_backoff * 2,
            max(self.config.backoff_max, self.config.poll_interval),
        )

    def _reset_backoff(self) -> None:
        self._current_backoff = max(self.config.poll_interval, 0.1)

    def request_shutdown(self) -> None:
        self._shutdown = True

    @property
    def busy(self) -> bool:
        return self._busy

    def _log_summary(self) -> None:
        runtime = time.monotonic() - self._start_monotonic
        logger.info(
            "Worker summary",
            extra={
                "queue": self.config.queue_name,
                "batches": self._batches,
                "acknowledged": self._acknowledged,
                "redelivered": self._redelivered,
                "runtime_seconds": round(runtime, 3),
            },
        )


def build_config(argv: list[str]) -> WorkerConfig:
    parser = argparse.ArgumentParser(description="Transcription queue worker")
    parser.add_argument(
        "--queue",
        default=TRANSCRIBE_QUEUE_NAME,
        help="Queue name to consume.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=QUEUE_BATCH_SIZE,
        help="Maximum number of messages leased per batch.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=float(os.environ.get("QUEUE_POLL_INTERVAL", "2")),
        help="Initial delay in seconds between polls of an empty queue.",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=int(os.environ.get("QUEUE_MAX_WORKERS", "1")),
        help="Process messages of a batch concurrently on N threads.",
    )
    parser.add_argument(
        "--backoff-max",
        type=float,
        default=float(os.environ.get("QUEUE_BACKOFF_MAX", "30")),
        help="Maximum idle backoff in seconds.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Process at most one batch then exit.",
    )
    args = parser.parse_args(argv)
    return WorkerConfig(
        queue_name=str(args.queue),
        batch_size=max(1, int(args.batch_size)),
        poll_interval=max(0.1, float(args.poll_interval)),
        max_workers=max(1, int(args.max_workers)),
        run_once=bool(args.once),
        backoff_max=float(args.backoff_max),
    )


def install_signal_handlers(worker: QueueWorker) -> None:
    def _signal_handler(signum: int, _frame: object) -> None:
        logger.info("Signal received", extra={"signal": signum})
        worker.request_shutdown()
        if not worker.busy:
            raise GracefulExit()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _signal_handler)


def main(argv: Optional[list[str]] = None) -> int:
    init_db()
    config = build_config(sys.argv[1:] if argv is None else argv)
    worker = QueueWorker(config, build_queue(config.queue_name), build_orchestrator())
    install_signal_handlers(worker)
    try:
        worker.start()
    except GracefulExit:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
