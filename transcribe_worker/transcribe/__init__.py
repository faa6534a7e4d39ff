from .client import TranscriptionClient
from .subtitles import format_srt_time, format_vtt_time, to_srt, to_vtt

__all__ = ["TranscriptionClient", "format_srt_time", "format_vtt_time", "to_srt", "to_vtt"]
