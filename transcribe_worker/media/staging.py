"""Client for the video staging service (Cloudflare Stream API)."""

from __future__ import annotations

import contextlib
import time
from typing import Any, Callable, Iterator, Mapping, Optional

import httpx

from transcribe_worker.config import (
    CLOUDFLARE_ACCOUNT_ID,
    HTTP_TIMEOUT,
    STAGING_POLL_INTERVAL,
    STAGING_WAIT_TIMEOUT,
    STREAM_API_TOKEN,
    logger,
)
from transcribe_worker.jobs.errors import StagingError

API_BASE = "https://api.cloudflare.com/client/v4/accounts"
AUDIO_DOWNLOAD_TYPES = ("audio", "mp3")


class MediaStagingClient:
    """Uploads videos by URL, waits for them and exposes their audio track."""

    def __init__(
        self,
        account_id: str = CLOUDFLARE_ACCOUNT_ID,
        api_token: str = STREAM_API_TOKEN,
        *,
        timeout: float = HTTP_TIMEOUT,
        wait_timeout: float = STAGING_WAIT_TIMEOUT,
        poll_interval: float = STAGING_POLL_INTERVAL,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = f"{API_BASE}/{account_id}/stream"
        self.api_token = api_token
        self.timeout = timeout
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self._http_client = http_client
        self._sleep = sleep
        self._clock = clock

    @contextlib.contextmanager
    def _client(self) -> Iterator[httpx.Client]:
        if self._http_client is not None:
            yield self._http_client
            return
        with httpx.Client(timeout=self.timeout) as client:
            yield client

    def _request(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_token}"}
        try:
            with self._client() as client:
                response = client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise StagingError(f"Stream API request failed: {exc}") from exc

        if response.is_error:
            raise StagingError(
                f"Stream API error: {_error_message(response)}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise StagingError("Stream API returned invalid JSON") from exc

    def upload_video_from_url(
        self,
        video_url: str,
        *,
        name: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> dict[str, Any]:
        meta: dict[str, Any] = {"name": name or "Transcription Video"}
        if job_id is not None:
            meta["jobId"] = job_id
        payload = {
            "url": video_url,
            "meta": meta,
            "allowedOrigins": ["*"],
            "requireSignedURLs": False,
        }
        data = self._request("POST", "/copy", json=payload)
        result = dict(data.get("result") or {})
        if not result.get("uid"):
            raise StagingError("Stream API did not return a video uid")
        logger.info("Video staged", extra={"job_id": job_id, "staging_id": result["uid"]})
        return result

    def get_video_status(self, uid: str) -> dict[str, Any]:
        data = self._request("GET", f"/{uid}")
        return dict(data.get("result") or {})

    def wait_for_processing(
        self,
        uid: str,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> dict[str, Any]:
        """Poll until the video is ready; raise ``StagingError`` on error or timeout."""
        limit = self.wait_timeout if timeout is None else timeout
        interval = self.poll_interval if poll_interval is None else poll_interval
        started = self._clock()

        while self._clock() - started < limit:
            video = self.get_video_status(uid)
            status = video.get("status") or {}
            state = status.get("state")
            if state == "ready":
                return {"uid": uid, "status": status}
            if state == "error":
                reason = status.get("errorReasonText") or "Unknown error"
                raise StagingError(f"Video processing failed: {reason}")
            logger.debug("Waiting for staged video", extra={"staging_id": uid, "state": state})
            self._sleep(interval)

        raise StagingError(f"Video processing timeout after {limit:g}s")

    def get_audio_download_url(self, uid: str) -> str:
        data = self._request("GET", f"/{uid}/downloads")
        result = data.get("result") or {}
        downloads = result.get("default") or []
        if isinstance(downloads, Mapping):
            downloads = [downloads]
        for item in downloads:
            if item.get("type") in AUDIO_DOWNLOAD_TYPES and item.get("url"):
                return item["url"]
        audio = result.get("audio")
        if isinstance(audio, Mapping) and audio.get("url"):
            return audio["url"]
        raise StagingError("Audio download URL not available")

    def delete_video(self, uid: str) -> None:
        self._request("DELETE", f"/{uid}")
        logger.debug("Staged video deleted", extra={"staging_id": uid})


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = {}
    errors = data.get("errors") or [] if isinstance(data, Mapping) else []
    if errors and isinstance(errors[0], Mapping) and errors[0].get("message"):
        return str(errors[0]["message"])
    return response.reason_phrase or str(response.status_code)


__all__ = ["MediaStagingClient"]
