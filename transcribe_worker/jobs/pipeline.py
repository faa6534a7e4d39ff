"""Pipeline orchestrator: runs one action for one job against the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from transcribe_worker.config import logger as default_logger
from transcribe_worker.db.models import JobStatus
from transcribe_worker.language import map_language_code

from .actions import JobAction
from .errors import CleanupError, JobError, JobNotFound, UnknownAction
from .progress import JobNotifier
from .store import Job, JobStore


class TranscriptionService(Protocol):
    def transcribe_from_url(
        self,
        audio_url: str,
        *,
        language: Optional[str] = None,
        format: Optional[str] = None,
        timestamps: bool = True,
        word_timestamps: bool = False,
    ) -> Mapping[str, Any]:
        ...


class StagingService(Protocol):
    def upload_video_from_url(self, video_url: str, *, name: Optional[str] = None, job_id: Optional[str] = None) -> Mapping[str, Any]:
        ...

    def wait_for_processing(self, uid: str) -> Mapping[str, Any]:
        ...

    def get_audio_download_url(self, uid: str) -> str:
        ...

    def delete_video(self, uid: str) -> None:
        ...


@dataclass(frozen=True)
class CleanupOutcome:
    """Result of a best-effort staging cleanup. Never raised."""

    resource_id: str
    error: Optional[CleanupError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PipelineResult:
    job_id: str
    output: Optional[Mapping[str, Any]] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    cleanup: Optional[CleanupOutcome] = None
    skipped: bool = False


def count_words(text: str) -> int:
    return len((text or "").split())


def _option(options: Mapping[str, Any], name: str, alias: str, default: Any) -> Any:
    if name in options:
        return options[name]
    return options.get(alias, default)


class PipelineOrchestrator:
    """Executes ``process_video`` / ``transcribe_audio`` for a job id."""

    def __init__(
        self,
        store: JobStore,
        transcriber: TranscriptionService,
        staging: StagingService,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.transcriber = transcriber
        self.staging = staging
        self.logger = logger or default_logger

    def handle(
        self,
        job_id: str,
        action: Any,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Optional[PipelineResult]:
        """Run ``action`` for ``job_id``.

        An unknown action marks the job failed and returns normally so the
        message gets acknowledged. Any other failure marks the job failed and
        is re-raised.
        """
        payload = payload or {}
        try:
            job_action = JobAction.parse(action)
        except UnknownAction as exc:
            self.logger.error(
                "Job failed: unknown action",
                extra={"job_id": job_id, "action": action},
            )
            self._record_failure(job_id, exc)
            return None

        self.logger.info(
            "Processing job",
            extra={"job_id": job_id, "action": job_action.value},
        )
        try:
            if job_action is JobAction.PROCESS_VIDEO:
                return self.process_video(job_id)
            elif job_action is JobAction.TRANSCRIBE_AUDIO:
                return self.transcribe_audio(
                    job_id,
                    payload.get("audioUrl"),
                    payload.get("stagingId"),
                )
            elif job_action is JobAction.RECAPTION:
                return self.recaption(
                    job_id,
                    payload.get("stagingId") or payload.get("streamId"),
                    payload.get("language"),
                )
            else:  # pragma: no cover - enum is closed
                raise UnknownAction(action)
        except Exception as exc:
            self.logger.exception(
                "Error processing job",
                extra={"job_id": job_id, "action": job_action.value, "error": str(exc)},
            )
            self._record_failure(job_id, exc)
            raise

    def process_video(self, job_id: str) -> PipelineResult:
        job = self._load(job_id)
        if self._already_completed(job):
            return PipelineResult(job_id=job_id, skipped=True)
        if not job.source_url:
            raise JobError(f"Job {job_id} has no source URL")

        self.store.update_job_status(job_id, JobStatus.PROCESSING)
        notifier = self._notifier(job_id)
        notifier.stage("uploading", 10, "Uploading video to staging")

        staged = self.staging.upload_video_from_url(
            job.source_url,
            name=f"Transcription Job {job_id}",
            job_id=job_id,
        )
        staging_id = staged["uid"]

        try:
            notifier.stage("processing", 30, "Video uploaded, waiting for processing")
            self.staging.wait_for_processing(staging_id)

            notifier.stage("extracting-audio", 50, "Resolving audio download URL")
            audio_url = self.staging.get_audio_download_url(staging_id)
        except Exception:
            self._cleanup_staging(job_id, staging_id)
            raise

        return self.transcribe_audio(job_id, audio_url, staging_id)

    def transcribe_audio(
        self,
        job_id: str,
        audio_url: Optional[str] = None,
        staging_id: Optional[str] = None,
        *,
        language: Optional[str] = None,
        delete_staging: bool = True,
    ) -> PipelineResult:
        """Transcribe ``audio_url`` (default: the job source) and store the result.

        ``staging_id`` is recorded in the metadata; the staged video is deleted
        afterwards unless ``delete_staging`` is false.
        """
        cleanup_id = staging_id if delete_staging else None
        try:
            job = self._load(job_id)
            if self._already_completed(job):
                return PipelineResult(job_id=job_id, skipped=True)
            audio_url = audio_url or job.source_url
            if not audio_url:
                raise JobError(f"Job {job_id} has no audio URL")

            if job.status is not JobStatus.PROCESSING:
                self.store.update_job_status(job_id, JobStatus.PROCESSING)
            notifier = self._notifier(job_id)
            notifier.stage("transcribing", 60, "Transcribing audio")

            options = job.options or {}
            output = self.transcriber.transcribe_from_url(
                audio_url,
                language=map_language_code(language or job.language),
                format=options.get("format"),
                timestamps=options.get("timestamps", True),
                word_timestamps=_option(options, "wordTimestamps", "word_timestamps", False),
            )

            metadata: dict[str, Any] = {
                "duration": output.get("duration"),
                "wordCount": count_words(output.get("text") or ""),
                "segmentCount": len(output.get("segments") or []),
                "audioUrl": audio_url,
            }
            if staging_id:
                metadata["stagingId"] = staging_id

            self.store.set_job_result(job_id, output, metadata)
        except Exception:
            if cleanup_id:
                self._cleanup_staging(job_id, cleanup_id)
            raise

        self.logger.info(
            "Transcription stored",
            extra={
                "job_id": job_id,
                "word_count": metadata["wordCount"],
                "segment_count": metadata["segmentCount"],
            },
        )

        cleanup = self._cleanup_staging(job_id, cleanup_id) if cleanup_id else None
        return PipelineResult(job_id=job_id, output=output, metadata=metadata, cleanup=cleanup)

    def recaption(
        self,
        job_id: str,
        staging_id: Optional[str] = None,
        language: Optional[str] = None,
    ) -> PipelineResult:
        """Re-run transcription from an already staged video.

        Works on jobs in any status. The staged video is owned by the caller
        and is left in place.
        """
        job = self._load(job_id)
        staging_id = staging_id or (job.metadata or {}).get("stagingId")
        if not staging_id:
            raise JobError(f"Job {job_id} has no staged video to recaption")

        self.store.update_job_status(job_id, JobStatus.PROCESSING)
        notifier = self._notifier(job_id)
        notifier.stage("recaptioning", 10, "Starting recaptioning process")
        notifier.stage("extracting-audio", 50, "Resolving audio download URL")
        audio_url = self.staging.get_audio_download_url(staging_id)

        return self.transcribe_audio(
            job_id,
            audio_url,
            staging_id,
            language=language,
            delete_staging=False,
        )

    def _load(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def _notifier(self, job_id: str) -> JobNotifier:
        return JobNotifier(job_id, self.store, self.logger)

    def _already_completed(self, job: Job) -> bool:
        if job.status is JobStatus.COMPLETED:
            self.logger.warning(
                "Job already completed; skipping duplicate delivery",
                extra={"job_id": job.id},
            )
            return True
        if job.status is JobStatus.FAILED:
            self.logger.info(
                "Retrying failed job",
                extra={"job_id": job.id, "error": (job.error or {}).get("message")},
            )
        return False

    def _cleanup_staging(self, job_id: str, staging_id: str) -> CleanupOutcome:
        try:
            self.staging.delete_video(staging_id)
        except Exception as exc:  # noqa: BLE001 - cleanup is best effort
            error = CleanupError(staging_id, exc)
            self.logger.warning(
                "Failed to delete staged video",
                extra={"job_id": job_id, "staging_id": staging_id, "error": str(exc)},
            )
            return CleanupOutcome(resource_id=staging_id, error=error)
        self.logger.info(
            "Staged video deleted",
            extra={"job_id": job_id, "staging_id": staging_id},
        )
        return CleanupOutcome(resource_id=staging_id)

    def _record_failure(self, job_id: str, error: BaseException) -> None:
        try:
            self.store.set_job_error(job_id, error)
        except Exception:  # noqa: BLE001 - keep the original error
            self.logger.exception(
                "Failed to record job error",
                extra={"job_id": job_id, "error": str(error)},
            )


__all__ = [
    "CleanupOutcome",
    "PipelineOrchestrator",
    "PipelineResult",
    "StagingService",
    "TranscriptionService",
    "count_words",
]
