"""Engine and session helpers for the job and queue tables."""

from __future__ import annotations

import contextlib
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from transcribe_worker.config import DATABASE_URL, logger

from .models import Base

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextlib.contextmanager
def session_scope(factory: sessionmaker | None = None) -> Iterator[Session]:
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind=None) -> None:
    """Create tables that do not exist yet."""
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info("Database initialised", extra={"url": target.url.render_as_string(hide_password=True)})
