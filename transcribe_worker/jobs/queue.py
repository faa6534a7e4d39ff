"""Database-backed delivery queue with acknowledge / redelivery controls."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from transcribe_worker.config import (
    QUEUE_LEASE_TIMEOUT,
    QUEUE_MAX_ATTEMPTS,
    QUEUE_RETRY_DELAY,
    TRANSCRIBE_QUEUE_NAME,
    logger,
)
from transcribe_worker.db.database import session_scope
from transcribe_worker.db.models import QueueMessage, QueueMessageStatus, utcnow

MAX_RETRY_DELAY_SECONDS = 3600.0


@dataclass
class DeliveryEnvelope:
    """A delivered message body plus its two terminal operations.

    Only the first of ``acknowledge`` / ``request_redelivery`` takes effect.
    """

    body: Mapping[str, Any]
    message_id: Optional[int] = None
    attempts: int = 1
    on_ack: Optional[Callable[[], None]] = field(default=None, repr=False)
    on_retry: Optional[Callable[[], None]] = field(default=None, repr=False)
    outcome: Optional[str] = None

    def acknowledge(self) -> None:
        if self._settle("acknowledged") and self.on_ack:
            self.on_ack()

    def request_redelivery(self) -> None:
        if self._settle("redelivery") and self.on_retry:
            self.on_retry()

    def _settle(self, outcome: str) -> bool:
        if self.outcome is not None:
            logger.warning(
                "Envelope already settled",
                extra={"message_id": self.message_id, "outcome": self.outcome, "requested": outcome},
            )
            return False
        self.outcome = outcome
        return True


@dataclass
class MessageBatch:
    messages: list[DeliveryEnvelope] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.messages)


def _supports_skip_locked(session: Session) -> bool:
    return session.get_bind().dialect.name == "postgresql"


class SqlQueue:
    """Named queue stored in the ``queue_messages`` table.

    Received messages are leased; a lease that is neither acknowledged nor
    released within ``lease_timeout`` seconds becomes visible again.
    """

    def __init__(
        self,
        name: str = TRANSCRIBE_QUEUE_NAME,
        *,
        session_factory: Optional[sessionmaker] = None,
        max_attempts: int = QUEUE_MAX_ATTEMPTS,
        retry_delay: float = QUEUE_RETRY_DELAY,
        lease_timeout: float = QUEUE_LEASE_TIMEOUT,
    ) -> None:
        self.name = name
        self._session_factory = session_factory
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = max(0.0, float(retry_delay))
        self.lease_timeout = float(lease_timeout)

    def send(self, body: Mapping[str, Any], *, delay_seconds: float = 0) -> int:
        now = utcnow()
        row = QueueMessage(
            queue_name=self.name,
            body=dict(body),
            status=QueueMessageStatus.PENDING.value,
            attempts=0,
            available_at=now + dt.timedelta(seconds=delay_seconds),
            created_at=now,
        )
        with session_scope(self._session_factory) as session:
            session.add(row)
            session.flush()
            message_id = row.id
        logger.debug(
            "Message enqueued",
            extra={"queue": self.name, "message_id": message_id, "action": body.get("action")},
        )
        return message_id

    def receive_batch(self, max_messages: int = 10) -> MessageBatch:
        """Lease up to ``max_messages`` visible messages."""
        now = utcnow()
        envelopes: list[DeliveryEnvelope] = []
        with session_scope(self._session_factory) as session:
            for row in self._fetch_visible(session, now, max_messages):
                if row.status == QueueMessageStatus.LEASED.value:
                    logger.info("Reclaiming stale lease", extra={"message_id": row.id})
                row.status = QueueMessageStatus.LEASED.value
                row.leased_at = now
                row.attempts = (row.attempts or 0) + 1
                envelopes.append(self._envelope(row))
            session.flush()
        return MessageBatch(messages=envelopes)

    def _fetch_visible(self, session: Session, now: dt.datetime, limit: int) -> list[QueueMessage]:
        stale_before = now - dt.timedelta(seconds=self.lease_timeout)
        query = (
            select(QueueMessage)
            .where(
                QueueMessage.queue_name == self.name,
                or_(
                    and_(
                        QueueMessage.status == QueueMessageStatus.PENDING.value,
                        QueueMessage.available_at <= now,
                    ),
                    and_(
                        QueueMessage.status == QueueMessageStatus.LEASED.value,
                        QueueMessage.leased_at < stale_before,
                    ),
                ),
            )
            .order_by(QueueMessage.available_at.asc(), QueueMessage.id.asc())
            .limit(max(1, limit))
        )
        if _supports_skip_locked(session):
            try:
                return list(session.execute(query.with_for_update(skip_locked=True)).scalars())
            except OperationalError:
                logger.warning("FOR UPDATE SKIP LOCKED failed; falling back to non-locking query.")
        return list(session.execute(query).scalars())

    def _envelope(self, row: QueueMessage) -> DeliveryEnvelope:
        message_id = row.id
        return DeliveryEnvelope(
            body=dict(row.body or {}),
            message_id=message_id,
            attempts=row.attempts,
            on_ack=lambda: self.ack(message_id),
            on_retry=lambda: self.retry(message_id),
        )

    def ack(self, message_id: int) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(QueueMessage, message_id)
            if not row:
                logger.warning("Ack skipped; message missing", extra={"message_id": message_id})
                return
            row.status = QueueMessageStatus.DONE.value
            row.leased_at = None
            session.flush()

    def retry(self, message_id: int, *, error: Optional[str] = None) -> None:
        """Return a message to the queue with backoff, or dead-letter it."""
        now = utcnow()
        with session_scope(self._session_factory) as session:
            row = session.get(QueueMessage, message_id)
            if not row:
                logger.warning("Retry skipped; message missing", extra={"message_id": message_id})
                return
            row.leased_at = None
            if error:
                row.last_error = error[:4000]
            if (row.attempts or 0) >= self.max_attempts:
                row.status = QueueMessageStatus.DEAD.value
                session.flush()
                logger.error(
                    "Message exhausted delivery attempts",
                    extra={"message_id": message_id, "attempts": row.attempts, "queue": self.name},
                )
                return
            delay = min(
                self.retry_delay * (2 ** max((row.attempts or 1) - 1, 0)),
                MAX_RETRY_DELAY_SECONDS,
            )
            row.status = QueueMessageStatus.PENDING.value
            row.available_at = now + dt.timedelta(seconds=delay)
            session.flush()
            logger.info(
                "Message scheduled for redelivery",
                extra={"message_id": message_id, "attempts": row.attempts, "delay_seconds": delay},
            )

    def count(self, status: QueueMessageStatus | str | None = None) -> int:
        with session_scope(self._session_factory) as session:
            query = (
                select(func.count())
                .select_from(QueueMessage)
                .where(QueueMessage.queue_name == self.name)
            )
            if status is not None:
                value = status.value if isinstance(status, QueueMessageStatus) else str(status)
                query = query.where(QueueMessage.status == value)
            return session.execute(query).scalar_one()


__all__ = ["DeliveryEnvelope", "MessageBatch", "SqlQueue", "MAX_RETRY_DELAY_SECONDS"]
