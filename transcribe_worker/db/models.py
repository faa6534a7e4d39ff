from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    JSON,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobStatus(str, Enum):
    """Lifecycle states of a transcription job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class QueueMessageStatus(str, Enum):
    PENDING = "pending"
    LEASED = "leased"
    DONE = "done"
    DEAD = "dead"


class TranscriptionJob(Base):
    """Persisted transcription job document."""

    __tablename__ = "transcription_jobs"

    id = Column(String(64), primary_key=True)
    status = Column(String(32), nullable=False, default=JobStatus.QUEUED.value, index=True)
    source_url = Column(Text, nullable=True)
    language = Column(String(32), nullable=True)
    options = Column(JSON, nullable=True)
    progress = Column(JSON, nullable=True)
    result = Column(JSON, nullable=True)
    result_metadata = Column("metadata", JSON, nullable=True)
    error = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"TranscriptionJob(id={self.id!r}, status={self.status!r})"


class QueueMessage(Base):
    """Message row of the SQL-backed delivery queue."""

    __tablename__ = "queue_messages"
    __table_args__ = (
        Index("ix_queue_messages_queue_status_available", "queue_name", "status", "available_at"),
    )

    id = Column(Integer, primary_key=True)
    queue_name = Column(String(64), nullable=False)
    body = Column(JSON, nullable=False)
    status = Column(String(16), nullable=False, default=QueueMessageStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    available_at = Column(DateTime, nullable=False, default=utcnow)
    leased_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_error = Column(Text, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return (
            f"QueueMessage(id={self.id}, queue={self.queue_name!r}, "
            f"status={self.status!r}, attempts={self.attempts})"
        )
