"""Real-time fan-out of job statistics and alert events to WebSocket clients."""
from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.core.runtime_state import set_stats_broadcast_active
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

JOB_UPDATES_TOPIC = "job-updates"
ALERTS_TOPIC = "alerts"
TOPICS = frozenset({JOB_UPDATES_TOPIC, ALERTS_TOPIC})

STATS_JOB_ID = "job-stats-broadcast"


@dataclass
class Connection:
    """One connected client; ``queue`` belongs to ``loop``."""

    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    topics: set[str] = field(default_factory=set)
    principal_id: str | None = None


def make_frame(event: str, payload: Any) -> dict[str, Any]:
    return {"event": event, "data": jsonable_encoder(payload)}


class Broadcaster:
    """Topic registry shared by the event loop and the request threadpool.

    ``publish`` may be called from any thread. Frames are handed to the
    owning loop with ``call_soon_threadsafe`` and dropped when a client's
    queue is full.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def register(self, connection: Connection) -> Connection:
        with self._lock:
            self._connections[connection.id] = connection
        logger.info("Realtime client connected", extra={"connection_id": connection.id})
        return connection

    def unregister(self, connection_id: str) -> None:
        with self._lock:
            removed = self._connections.pop(connection_id, None)
        if removed is not None:
            logger.info("Realtime client disconnected", extra={"connection_id": connection_id})

    def subscribe(self, connection_id: str, topic: str) -> bool:
        if topic not in TOPICS:
            raise ValueError(f"Unknown topic: {topic}")
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return False
            connection.topics.add(topic)
        logger.debug("Client subscribed", extra={"connection_id": connection_id, "topic": topic})
        return True

    def unsubscribe(self, connection_id: str, topic: str) -> bool:
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return False
            connection.topics.discard(topic)
        logger.debug("Client unsubscribed", extra={"connection_id": connection_id, "topic": topic})
        return True

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def subscribers(self, topic: str) -> list[Connection]:
        with self._lock:
            return [conn for conn in self._connections.values() if topic in conn.topics]

    def publish(self, topic: str, event: str, payload: Any) -> int:
        """Queue ``event`` for every subscriber of ``topic``; return how many were targeted."""

        targets = self.subscribers(topic)
        if not targets:
            return 0
        frame = make_frame(event, payload)
        for connection in targets:
            self._deliver(connection, frame)
        return len(targets)

    def send(self, connection_id: str, event: str, payload: Any) -> bool:
        with self._lock:
            connection = self._connections.get(connection_id)
        if connection is None:
            return False
        self._deliver(connection, make_frame(event, payload))
        return True

    def _deliver(self, connection: Connection, frame: dict[str, Any]) -> None:
        try:
            connection.loop.call_soon_threadsafe(self._enqueue, connection, frame)
        except RuntimeError:
            # Loop already closed: the client is gone.
            self.unregister(connection.id)

    @staticmethod
    def _enqueue(connection: Connection, frame: dict[str, Any]) -> None:
        try:
            connection.queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(
                "Dropping realtime message for slow client",
                extra={"connection_id": connection.id, "event": frame["event"]},
            )


_default_broadcaster = Broadcaster()


def get_broadcaster() -> Broadcaster:
    """Return the process-wide broadcaster (overridable as a dependency)."""

    return _default_broadcaster


def emit_job_update(broadcaster: Broadcaster, job: Any, event: str) -> int:
    """Publish a ``job-update`` (created, updated, completed, failed...)."""

    delivered = broadcaster.publish(
        JOB_UPDATES_TOPIC,
        "job-update",
        {"event": event, "job": job, "timestamp": utcnow()},
    )
    logger.debug("Job update emitted", extra={"event": event, "subscribers": delivered})
    return delivered


def emit_job_alert(broadcaster: Broadcaster, alert: dict[str, Any]) -> int:
    delivered = broadcaster.publish(
        JOB_UPDATES_TOPIC,
        "job-alert",
        {**alert, "timestamp": utcnow()},
    )
    logger.info(
        "Job alert emitted",
        extra={"type": alert.get("type"), "severity": alert.get("severity")},
    )
    return delivered


def _default_stats(db: Session) -> dict[str, Any]:
    from app.services.jobs import get_job_stats

    return get_job_stats(db)


def _default_session_factory() -> Session:
    from app.db import get_sessionmaker

    return get_sessionmaker()()


class JobStatsBroadcast:
    """Periodically publishes ``job-stats`` to the job-updates topic."""

    def __init__(
        self,
        broadcaster: Broadcaster,
        *,
        interval_seconds: float = 5.0,
        session_factory: Callable[[], Session] = _default_session_factory,
        stats_fn: Callable[[Session], dict[str, Any]] = _default_stats,
    ) -> None:
        self.broadcaster = broadcaster
        self.interval_seconds = interval_seconds
        self._session_factory = session_factory
        self._stats_fn = stats_fn
        self._scheduler: AsyncIOScheduler | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> bool:
        """Start the interval job; a second call is a no-op returning False."""

        with self._lock:
            if self._scheduler is not None:
                return False
            scheduler = AsyncIOScheduler()
            scheduler.add_job(
                self.tick,
                "interval",
                seconds=self.interval_seconds,
                id=STATS_JOB_ID,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            self._scheduler = scheduler
        set_stats_broadcast_active(True)
        logger.info("Job stats broadcast started", extra={"interval_seconds": self.interval_seconds})
        return True

    def stop(self) -> None:
        with self._lock:
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is None:
            return
        scheduler.shutdown(wait=False)
        set_stats_broadcast_active(False)
        logger.info("Job stats broadcast stopped")

    def tick(self) -> int:
        """Recompute job statistics and publish them; errors are logged."""

        if not self.broadcaster.subscribers(JOB_UPDATES_TOPIC):
            return 0
        db = self._session_factory()
        try:
            stats = self._stats_fn(db)
        except Exception:
            logger.exception("Failed to compute job stats for broadcast")
            return 0
        finally:
            db.close()
        delivered = self.broadcaster.publish(JOB_UPDATES_TOPIC, "job-stats", stats)
        logger.debug("Job stats broadcasted", extra={"subscribers": delivered})
        return delivered


__all__ = [
    "ALERTS_TOPIC",
    "Broadcaster",
    "Connection",
    "JOB_UPDATES_TOPIC",
    "JobStatsBroadcast",
    "STATS_JOB_ID",
    "TOPICS",
    "emit_job_alert",
    "emit_job_update",
    "get_broadcaster",
    "make_frame",
]
