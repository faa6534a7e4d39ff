"""SRT / WebVTT rendering of transcription segments."""

from __future__ import annotations

import math
from typing import Any, Iterable, Mapping


def _split_seconds(seconds: float) -> tuple[int, int, int, int]:
    seconds = max(0.0, float(seconds or 0))
    total_ms = int(math.floor(seconds * 1000 + 1e-6))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return hours, minutes, secs, millis


def format_srt_time(seconds: float) -> str:
    hours, minutes, secs, millis = _split_seconds(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def format_vtt_time(seconds: float) -> str:
    hours, minutes, secs, millis = _split_seconds(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def to_srt(segments: Iterable[Mapping[str, Any]]) -> str:
    blocks = []
    for index, segment in enumerate(segments, start=1):
        start = format_srt_time(segment.get("start", 0))
        end = format_srt_time(segment.get("end", 0))
        text = str(segment.get("text", "")).strip()
        blocks.append(f"{index}\n{start} --> {end}\n{text}\n")
    return "\n".join(blocks)


def to_vtt(segments: Iterable[Mapping[str, Any]]) -> str:
    cues = []
    for segment in segments:
        start = format_vtt_time(segment.get("start", 0))
        end = format_vtt_time(segment.get("end", 0))
        text = str(segment.get("text", "")).strip()
        cues.append(f"{start} --> {end}\n{text}\n")
    return "WEBVTT\n\n" + "\n".join(cues)


__all__ = ["format_srt_time", "format_vtt_time", "to_srt", "to_vtt"]
