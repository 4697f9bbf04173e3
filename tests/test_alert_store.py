from datetime import UTC, datetime, timedelta

import pytest

from app.schemas.alert import AlertCreate, AlertSeverity, AlertStatus, AlertType
from app.services.alerts import InMemoryAlertStore, compute_stats, generate_alert_id
from app.utils.errors import InvalidStateError, NotFoundError


class StepClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 8, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _payload(**overrides) -> AlertCreate:
    values = {"type": AlertType.JOB, "severity": AlertSeverity.WARNING, "title": "Queue backlog"}
    values.update(overrides)
    return AlertCreate(**values)


def test_generated_ids_are_unique_and_prefixed():
    ids = {generate_alert_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(item.startswith("alert_") for item in ids)


def test_newest_first():
    store = InMemoryAlertStore()
    first = store.create(_payload(title="first"))
    second = store.create(_payload(title="second"))
    assert [alert.id for alert in store.list()] == [second.id, first.id]


def test_capacity_evicts_oldest():
    store = InMemoryAlertStore(capacity=1000)
    oldest = store.create(_payload(title="oldest"))
    for index in range(1000):
        store.create(_payload(title=f"alert {index}"))

    assert store.size() == 1000
    with pytest.raises(NotFoundError):
        store.get(oldest.id)
    assert store.list()[0].title == "alert 999"


def test_acknowledge_then_resolve_records_actors_and_times():
    store = InMemoryAlertStore(clock=StepClock())
    alert = store.create(_payload())

    acknowledged = store.acknowledge(alert.id, "admin-1")
    assert acknowledged.status is AlertStatus.ACKNOWLEDGED
    assert acknowledged.acknowledged_by == "admin-1"
    assert acknowledged.acknowledged_at > alert.created_at

    resolved = store.resolve(alert.id, "admin-2", "Scaled workers")
    assert resolved.status is AlertStatus.RESOLVED
    assert resolved.resolved_by == "admin-2"
    assert resolved.resolution == "Scaled workers"
    assert resolved.resolved_at > resolved.acknowledged_at
    assert resolved.acknowledged_by == "admin-1"


def test_active_alert_can_be_resolved_directly():
    store = InMemoryAlertStore()
    alert = store.create(_payload())
    assert store.resolve(alert.id, "admin", "noise").status is AlertStatus.RESOLVED


@pytest.mark.parametrize("action", ["acknowledge", "resolve"])
def test_resolved_alert_is_final(action):
    store = InMemoryAlertStore()
    alert = store.create(_payload())
    store.resolve(alert.id, "admin", "done")

    with pytest.raises(InvalidStateError):
        if action == "acknowledge":
            store.acknowledge(alert.id, "admin")
        else:
            store.resolve(alert.id, "admin", "again")
    assert store.get(alert.id).resolution == "done"


def test_acknowledging_twice_is_rejected():
    store = InMemoryAlertStore()
    alert = store.create(_payload())
    store.acknowledge(alert.id, "admin")
    with pytest.raises(InvalidStateError) as excinfo:
        store.acknowledge(alert.id, "admin")
    assert excinfo.value.status_code == 409


def test_permissive_mode_allows_any_transition():
    store = InMemoryAlertStore(strict_transitions=False)
    alert = store.create(_payload())
    store.resolve(alert.id, "admin", "done")
    reopened = store.acknowledge(alert.id, "other")
    assert reopened.status is AlertStatus.ACKNOWLEDGED
    assert reopened.acknowledged_by == "other"


def test_unknown_id_is_not_found():
    store = InMemoryAlertStore()
    with pytest.raises(NotFoundError):
        store.get("alert_missing")
    with pytest.raises(NotFoundError):
        store.acknowledge("alert_missing", "admin")


def test_returned_alerts_are_copies():
    store = InMemoryAlertStore()
    alert = store.create(_payload(data={"jobId": "job-1"}))
    alert.data["jobId"] = "tampered"
    listed = store.list()[0]
    listed.status = AlertStatus.RESOLVED

    stored = store.get(alert.id)
    assert stored.data == {"jobId": "job-1"}
    assert stored.status is AlertStatus.ACTIVE


def test_list_filters_combine():
    store = InMemoryAlertStore()
    store.create(_payload(type=AlertType.JOB, severity=AlertSeverity.CRITICAL))
    store.create(_payload(type=AlertType.JOB, severity=AlertSeverity.INFO))
    target = store.create(_payload(type=AlertType.SECURITY, severity=AlertSeverity.CRITICAL))

    assert len(store.list(type=AlertType.JOB)) == 2
    assert [a.id for a in store.list(type=AlertType.SECURITY, severity=AlertSeverity.CRITICAL)] == [target.id]
    assert store.list(status=AlertStatus.RESOLVED) == []


def test_stats_reconcile_with_contents():
    store = InMemoryAlertStore()
    alerts = [
        store.create(_payload(severity=AlertSeverity.CRITICAL, type=AlertType.SYSTEM)),
        store.create(_payload(severity=AlertSeverity.WARNING, type=AlertType.JOB)),
        store.create(_payload(severity=AlertSeverity.WARNING, type=AlertType.JOB)),
        store.create(_payload(severity=AlertSeverity.INFO, type=AlertType.USER)),
    ]
    store.acknowledge(alerts[0].id, "admin")
    store.resolve(alerts[1].id, "admin", "fixed")

    stats = store.stats()
    assert stats.total == 4
    assert (stats.active, stats.acknowledged, stats.resolved) == (2, 1, 1)
    assert stats.active + stats.acknowledged + stats.resolved == stats.total
    assert sum(stats.by_severity.values()) == stats.total
    assert sum(stats.by_type.values()) == stats.total
    assert stats.by_severity["warning"] == 2
    assert stats.by_type["job"] == 2
    assert stats.by_type["chat"] == 0


def test_stats_of_empty_store():
    stats = compute_stats([])
    assert stats.total == 0
    assert set(stats.by_severity) == {"info", "warning", "error", "critical"}
