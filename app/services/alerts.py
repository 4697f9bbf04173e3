"""Alert service: bounded in-memory store plus audit and broadcast side effects."""
from __future__ import annotations

import abc
import logging
import threading
import time
import uuid
from collections import deque
from typing import Any, Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.schemas.alert import (
    Alert,
    AlertCreate,
    AlertSeverity,
    AlertStats,
    AlertStatus,
    AlertType,
)
from app.schemas.filters import AlertFilters
from app.services.query_builder import ListQuery
from app.services.realtime import ALERTS_TOPIC, Broadcaster
from app.utils.audit import log_activity
from app.utils.errors import InvalidStateError, NotFoundError
from app.utils.pagination import paginate
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

ALERT_CREATED_ACTIVITY = "alert_created"

ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
}


def generate_alert_id() -> str:
    return f"alert_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class AlertStore(abc.ABC):
    """Storage interface for alerts.

    Implementations must be safe to call from several threads and must hand
    out copies, never the stored objects.
    """

    @abc.abstractmethod
    def create(self, payload: AlertCreate) -> Alert: ...

    @abc.abstractmethod
    def list(
        self,
        *,
        type: AlertType | None = None,
        severity: AlertSeverity | None = None,
        status: AlertStatus | None = None,
    ) -> list[Alert]: ...

    @abc.abstractmethod
    def get(self, alert_id: str) -> Alert: ...

    @abc.abstractmethod
    def acknowledge(self, alert_id: str, actor: str) -> Alert: ...

    @abc.abstractmethod
    def resolve(self, alert_id: str, actor: str, resolution: str | None) -> Alert: ...

    @abc.abstractmethod
    def stats(self) -> AlertStats: ...

    @abc.abstractmethod
    def size(self) -> int: ...


class InMemoryAlertStore(AlertStore):
    """Newest-first bounded log; inserting into a full store evicts the oldest alert."""

    def __init__(
        self,
        capacity: int = 1000,
        *,
        strict_transitions: bool = True,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.strict_transitions = strict_transitions
        self._clock = clock
        self._alerts: deque[Alert] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def create(self, payload: AlertCreate) -> Alert:
        alert = Alert(
            id=generate_alert_id(),
            type=payload.type,
            severity=payload.severity,
            title=payload.title,
            message=payload.message,
            data=dict(payload.data),
            status=AlertStatus.ACTIVE,
            created_at=self._clock(),
        )
        with self._lock:
            self._alerts.appendleft(alert)
        return alert.model_copy(deep=True)

    def list(
        self,
        *,
        type: AlertType | None = None,
        severity: AlertSeverity | None = None,
        status: AlertStatus | None = None,
    ) -> list[Alert]:
        with self._lock:
            snapshot = [alert.model_copy(deep=True) for alert in self._alerts]
        return [
            alert
            for alert in snapshot
            if (type is None or alert.type == type)
            and (severity is None or alert.severity == severity)
            and (status is None or alert.status == status)
        ]

    def _find(self, alert_id: str) -> Alert:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        raise NotFoundError("Alert not found", details={"id": alert_id})

    def _check_transition(self, alert: Alert, target: AlertStatus) -> None:
        if not self.strict_transitions:
            return
        if target not in ALLOWED_TRANSITIONS[alert.status]:
            raise InvalidStateError(
                f"Cannot move alert from {alert.status.value} to {target.value}",
                details={"id": alert.id, "status": alert.status.value},
            )

    def get(self, alert_id: str) -> Alert:
        with self._lock:
            return self._find(alert_id).model_copy(deep=True)

    def acknowledge(self, alert_id: str, actor: str) -> Alert:
        with self._lock:
            alert = self._find(alert_id)
            self._check_transition(alert, AlertStatus.ACKNOWLEDGED)
            alert.status = AlertStatus.ACKNOWLEDGED
            alert.acknowledged_at = self._clock()
            alert.acknowledged_by = actor
            return alert.model_copy(deep=True)

    def resolve(self, alert_id: str, actor: str, resolution: str | None) -> Alert:
        with self._lock:
            alert = self._find(alert_id)
            self._check_transition(alert, AlertStatus.RESOLVED)
            alert.status = AlertStatus.RESOLVED
            alert.resolved_at = self._clock()
            alert.resolved_by = actor
            alert.resolution = resolution
            return alert.model_copy(deep=True)

    def stats(self) -> AlertStats:
        with self._lock:
            snapshot = list(self._alerts)
        return compute_stats(snapshot)

    def size(self) -> int:
        with self._lock:
            return len(self._alerts)


def compute_stats(alerts: Iterable[Alert]) -> AlertStats:
    by_status = {item.value: 0 for item in AlertStatus}
    by_severity = {item.value: 0 for item in AlertSeverity}
    by_type = {item.value: 0 for item in AlertType}
    total = 0
    for alert in alerts:
        total += 1
        by_status[alert.status.value] += 1
        by_severity[alert.severity.value] += 1
        by_type[alert.type.value] += 1
    return AlertStats(
        total=total,
        active=by_status[AlertStatus.ACTIVE.value],
        acknowledged=by_status[AlertStatus.ACKNOWLEDGED.value],
        resolved=by_status[AlertStatus.RESOLVED.value],
        by_severity=by_severity,
        by_type=by_type,
    )


_default_store: InMemoryAlertStore | None = None
_store_lock = threading.Lock()


def get_alert_store() -> AlertStore:
    """Return the process-wide alert store (overridable as a dependency)."""

    global _default_store
    with _store_lock:
        if _default_store is None:
            settings = get_settings()
            _default_store = InMemoryAlertStore(
                settings.ALERT_CAPACITY,
                strict_transitions=settings.ALERT_STRICT_TRANSITIONS,
            )
        return _default_store


def _record_alert(db: Session, alert: Alert) -> None:
    try:
        log_activity(
            db,
            admin_id=None,
            activity_type=ALERT_CREATED_ACTIVITY,
            data=alert.model_dump(mode="json", by_alias=True),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record alert in activity log", extra={"alert_id": alert.id})


def _alert_payload(alert: Alert) -> dict[str, Any]:
    return alert.model_dump(mode="json", by_alias=True)


def create_alert(
    store: AlertStore,
    payload: AlertCreate,
    *,
    broadcaster: Broadcaster | None = None,
    db: Session | None = None,
) -> Alert:
    """Insert an alert, audit it and push ``alert:new`` to subscribers."""

    alert = store.create(payload)
    logger.warning(
        "Alert created",
        extra={
            "alert_id": alert.id,
            "type": alert.type.value,
            "severity": alert.severity.value,
            "title": alert.title,
        },
    )
    if db is not None:
        _record_alert(db, alert)
    if broadcaster is not None:
        broadcaster.publish(ALERTS_TOPIC, "alert:new", _alert_payload(alert))
    if alert.severity is AlertSeverity.CRITICAL:
        # No notification channel is wired up yet; the log line is the hook.
        logger.warning(
            "Critical alert raised; notification required",
            extra={"alert_id": alert.id, "title": alert.title},
        )
    return alert


def list_alerts(store: AlertStore, filters: AlertFilters, query: ListQuery) -> dict[str, Any]:
    matched = store.list(type=filters.type, severity=filters.severity, status=filters.status)
    window = matched[query.offset : query.offset + query.limit]
    return paginate(
        "alerts",
        [_alert_payload(alert) for alert in window],
        total=len(matched),
        page=query.page,
        limit=query.limit,
    )


def get_alert(store: AlertStore, alert_id: str) -> Alert:
    return store.get(alert_id)


def acknowledge_alert(
    store: AlertStore, alert_id: str, actor: str, *, broadcaster: Broadcaster | None = None
) -> Alert:
    alert = store.acknowledge(alert_id, actor)
    logger.info("Alert acknowledged", extra={"alert_id": alert_id, "admin_id": actor})
    if broadcaster is not None:
        broadcaster.publish(ALERTS_TOPIC, "alert:update", _alert_payload(alert))
    return alert


def resolve_alert(
    store: AlertStore,
    alert_id: str,
    actor: str,
    resolution: str | None,
    *,
    broadcaster: Broadcaster | None = None,
) -> Alert:
    alert = store.resolve(alert_id, actor, resolution)
    logger.info("Alert resolved", extra={"alert_id": alert_id, "admin_id": actor})
    if broadcaster is not None:
        broadcaster.publish(ALERTS_TOPIC, "alert:update", _alert_payload(alert))
    return alert


def alert_stats(store: AlertStore) -> AlertStats:
    return store.stats()


__all__ = [
    "ALERT_CREATED_ACTIVITY",
    "ALLOWED_TRANSITIONS",
    "AlertStore",
    "InMemoryAlertStore",
    "acknowledge_alert",
    "alert_stats",
    "compute_stats",
    "create_alert",
    "generate_alert_id",
    "get_alert",
    "get_alert_store",
    "list_alerts",
    "resolve_alert",
]
