from .database import SessionLocal, engine, init_db, session_scope
from .models import (
    Base,
    JobStatus,
    QueueMessage,
    QueueMessageStatus,
    TranscriptionJob,
    utcnow,
)

__all__ = [
    "Base",
    "JobStatus",
    "QueueMessage",
    "QueueMessageStatus",
    "SessionLocal",
    "TranscriptionJob",
    "engine",
    "init_db",
    "session_scope",
    "utcnow",
]
