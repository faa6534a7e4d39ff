"""Client for an OpenAI-compatible Whisper transcription deployment."""

from __future__ import annotations

import contextlib
import json
from typing import Any, Iterator, Mapping, Optional

import httpx

from transcribe_worker.config import (
    OPENAI_API_KEY,
    OPENAI_API_VERSION,
    OPENAI_ENDPOINT,
    TRANSCRIBE_TIMEOUT,
    logger,
)
from transcribe_worker.jobs.errors import TranscriptionError
from transcribe_worker.language import AUTO_DETECT

from .subtitles import to_srt, to_vtt

DEFAULT_DEPLOYMENT = "whisper-1"


class TranscriptionClient:
    """Fetches audio by URL and sends it to the speech-to-text endpoint."""

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        endpoint: str = OPENAI_ENDPOINT,
        api_version: str = OPENAI_API_VERSION,
        *,
        deployment: str = DEFAULT_DEPLOYMENT,
        timeout: float = TRANSCRIBE_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.api_version = api_version
        self.deployment = deployment
        self.timeout = timeout
        self.base_url = f"{endpoint.rstrip('/')}/openai/deployments/{deployment}/audio/transcriptions"
        self._http_client = http_client

    @contextlib.contextmanager
    def _client(self) -> Iterator[httpx.Client]:
        if self._http_client is not None:
            yield self._http_client
            return
        with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    def transcribe_from_url(
        self,
        audio_url: str,
        *,
        language: Optional[str] = None,
        format: Optional[str] = None,
        timestamps: bool = True,
        word_timestamps: bool = False,
    ) -> dict[str, Any]:
        with self._client() as client:
            audio = self._fetch_audio(client, audio_url)
            raw = self._post_audio(
                client,
                audio,
                language=language,
                timestamps=timestamps,
                word_timestamps=word_timestamps,
            )
        return self.format_result(raw, format)

    def _fetch_audio(self, client: httpx.Client, audio_url: str) -> bytes:
        try:
            response = client.get(audio_url)
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Failed to fetch audio: {exc}") from exc
        if response.is_error:
            raise TranscriptionError(
                f"Failed to fetch audio: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content

    def _post_audio(
        self,
        client: httpx.Client,
        audio: bytes,
        *,
        language: Optional[str],
        timestamps: bool,
        word_timestamps: bool,
    ) -> Mapping[str, Any]:
        data: dict[str, Any] = {
            "model": self.deployment,
            "response_format": "verbose_json",
        }
        if language and language != AUTO_DETECT:
            data["language"] = language
        if timestamps:
            granularities = ["segment"]
            if word_timestamps:
                granularities.append("word")
            data["timestamp_granularities[]"] = granularities

        logger.debug(
            "Sending audio for transcription",
            extra={"bytes": len(audio), "language": language or AUTO_DETECT},
        )
        try:
            response = client.post(
                self.base_url,
                params={"api-version": self.api_version},
                headers={"api-key": self.api_key},
                data=data,
                files={"file": ("audio.mp3", audio, "audio/mpeg")},
            )
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc

        if response.is_error:
            body = response.text[:300] if response.text else "No response body"
            raise TranscriptionError(
                f"Transcription API error: {response.status_code} {body}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TranscriptionError("Failed to parse transcription response JSON") from exc

    @staticmethod
    def format_result(raw: Mapping[str, Any], output_format: Optional[str] = None) -> dict[str, Any]:
        segments = [
            {
                "start": float(segment.get("start", 0) or 0),
                "end": float(segment.get("end", 0) or 0),
                "text": str(segment.get("text", "")),
            }
            for segment in raw.get("segments") or []
        ]
        formatted: dict[str, Any] = {
            "text": raw.get("text") or "",
            "language": raw.get("language"),
            "duration": raw.get("duration"),
            "segments": segments,
            "words": list(raw.get("words") or []),
        }
        if output_format == "srt":
            formatted["srt"] = to_srt(segments)
        elif output_format == "vtt":
            formatted["vtt"] = to_vtt(segments)
        elif output_format == "json":
            formatted["json"] = json.dumps(segments, ensure_ascii=False, indent=2)
        return formatted


__all__ = ["DEFAULT_DEPLOYMENT", "TranscriptionClient"]
