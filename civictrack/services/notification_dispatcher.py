"""
Delayed notification dispatch.

The sync engine's duty ends at the enqueue: a dispatcher records that a
notification of some kind is due for a subject after a delay. Delivery
is handled by whatever worker drains the queue.

Two backends:
- DatabaseNotificationDispatcher writes a notification_jobs row in the
  caller's session, so the job commits atomically with the bill
- RedisNotificationDispatcher adds a JSON payload to a sorted set scored
  by the due timestamp; the sync engine calls it after the commit

Responsibility: Enqueue delayed notifications
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, UTC
from typing import Optional
import json
import logging

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.models import NotificationJobModel
from ..models.enums import NotificationJobStatus

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):
    """
    Interface for scheduling a notification after a delay.

    A transactional dispatcher writes through the caller's session, so its
    jobs vanish with a rollback. Anything else must only be called once
    the subject has been committed.
    """

    transactional: bool = False

    @abstractmethod
    async def schedule(self, kind: str, subject_type: str, subject_id: int, delay: timedelta) -> None:
        """
        Enqueue a notification.

        Args:
            kind: Notification kind (e.g., "bill_enacted")
            subject_type: Type of the subject entity (e.g., "Bill")
            subject_id: Primary key of the subject
            delay: How long to wait before the notification is due
        """

    async def close(self) -> None:
        pass


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """Outbox backed by the notification_jobs table"""

    transactional = True

    def __init__(self, session: AsyncSession):
        self.session = session

    async def schedule(self, kind: str, subject_type: str, subject_id: int, delay: timedelta) -> None:
        job = NotificationJobModel(
            kind=str(getattr(kind, "value", kind)),
            subject_type=subject_type,
            subject_id=subject_id,
            run_at=datetime.now(UTC) + delay,
            status=NotificationJobStatus.PENDING,
        )
        self.session.add(job)
        await self.session.flush()

        logger.debug(f"Queued {job.kind} for {subject_type} {subject_id} at {job.run_at.isoformat()}")


class RedisNotificationDispatcher(NotificationDispatcher):
    """
    Sorted-set queue in Redis.

    Members are JSON payloads; scores are the due time as a UNIX timestamp,
    so a worker can ZRANGEBYSCORE up to "now".
    """

    def __init__(self, client: aioredis.Redis, key: Optional[str] = None):
        self.client = client
        self.key = key or settings.redis.notification_queue_key

    @classmethod
    def from_settings(cls) -> "RedisNotificationDispatcher":
        client = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.redis.socket_timeout,
            socket_connect_timeout=settings.redis.socket_connect_timeout,
        )
        return cls(client)

    async def schedule(self, kind: str, subject_type: str, subject_id: int, delay: timedelta) -> None:
        now = datetime.now(UTC)
        run_at = now + delay
        payload = json.dumps(
            {
                "kind": str(getattr(kind, "value", kind)),
                "subject_type": subject_type,
                "subject_id": subject_id,
                "enqueued_at": now.isoformat(),
            },
            sort_keys=True,
        )
        await self.client.zadd(self.key, {payload: run_at.timestamp()})

        logger.debug(f"Queued {payload} in {self.key} at {run_at.isoformat()}")

    async def close(self) -> None:
        await self.client.aclose()


def build_dispatcher(session: AsyncSession) -> NotificationDispatcher:
    """Redis queue when REDIS_ENABLED, otherwise the database outbox"""
    if settings.redis.enabled:
        return RedisNotificationDispatcher.from_settings()
    return DatabaseNotificationDispatcher(session)
