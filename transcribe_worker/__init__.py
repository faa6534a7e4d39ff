"""Queue consumer and pipeline for asynchronous transcription jobs."""

__version__ = "0.3.0"
