import asyncio

import pytest
from sqlalchemy import select

from app.models import SYSTEM_ACTOR_ID, UserActivityLog
from app.schemas.alert import AlertCreate, AlertSeverity, AlertType
from app.services.alerts import create_alert
from app.services.realtime import ALERTS_TOPIC, Connection

BASE = "/admin/system/alerts"


@pytest.mark.anyio("asyncio")
async def test_test_alert_is_created_with_defaults(client, alert_store, admin_principal):
    resp = await client.post(f"{BASE}/test", json={"severity": "critical", "type": "job"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["id"].startswith("alert_")
    assert data["status"] == "active"
    assert data["severity"] == "critical"
    assert data["title"] == "Test Alert"
    assert data["data"]["test"] is True
    assert data["data"]["createdBy"] == admin_principal.id
    assert "createdAt" in data
    assert alert_store.size() == 1


@pytest.mark.anyio("asyncio")
async def test_test_alert_rejects_unknown_severity(client):
    resp = await client.post(f"{BASE}/test", json={"severity": "apocalyptic"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio("asyncio")
async def test_test_alert_is_audited(client, db_session):
    resp = await client.post(f"{BASE}/test", json={"title": "Disk almost full"})
    alert_id = resp.json()["data"]["id"]

    entry = db_session.scalars(
        select(UserActivityLog).where(UserActivityLog.activity_type == "alert_created")
    ).one()
    assert entry.admin_id == SYSTEM_ACTOR_ID
    assert entry.activity_data["id"] == alert_id


@pytest.mark.anyio("asyncio")
async def test_list_filters_and_paginates(client, alert_store):
    for _ in range(3):
        create_alert(alert_store, AlertCreate(type=AlertType.JOB, severity=AlertSeverity.WARNING, title="slow"))
    create_alert(alert_store, AlertCreate(type=AlertType.SECURITY, severity=AlertSeverity.CRITICAL, title="breach"))

    resp = await client.get(BASE, params={"type": "job", "limit": 2, "page": 2})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}
    assert len(data["alerts"]) == 1

    resp = await client.get(BASE, params={"severity": "critical"})
    alerts = resp.json()["data"]["alerts"]
    assert [alert["title"] for alert in alerts] == ["breach"]


@pytest.mark.anyio("asyncio")
async def test_acknowledge_resolve_and_conflicts(client, alert_store, admin_principal):
    alert = create_alert(alert_store, AlertCreate(title="Worker down"))

    resp = await client.post(f"{BASE}/{alert.id}/acknowledge")
    assert resp.status_code == 200
    acknowledged = resp.json()["data"]
    assert acknowledged["status"] == "acknowledged"
    assert acknowledged["acknowledgedBy"] == admin_principal.id

    resp = await client.post(f"{BASE}/{alert.id}/resolve", json={"resolution": "Restarted worker"})
    assert resp.status_code == 200
    resolved = resp.json()["data"]
    assert resolved["status"] == "resolved"
    assert resolved["resolution"] == "Restarted worker"

    resp = await client.post(f"{BASE}/{alert.id}/acknowledge")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.anyio("asyncio")
async def test_resolve_requires_resolution(client, alert_store):
    alert = create_alert(alert_store, AlertCreate(title="Worker down"))
    resp = await client.post(f"{BASE}/{alert.id}/resolve", json={})
    assert resp.status_code == 400


@pytest.mark.anyio("asyncio")
async def test_unknown_alert_is_404(client):
    resp = await client.get(f"{BASE}/alert_0_missing")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"


@pytest.mark.anyio("asyncio")
async def test_stats_endpoint(client, alert_store):
    first = create_alert(alert_store, AlertCreate(severity=AlertSeverity.ERROR))
    create_alert(alert_store, AlertCreate(severity=AlertSeverity.INFO))
    alert_store.acknowledge(first.id, "admin")

    resp = await client.get(f"{BASE}/stats")
    stats = resp.json()["data"]
    assert stats["total"] == 2
    assert stats["active"] == 1
    assert stats["acknowledged"] == 1
    assert stats["bySeverity"]["error"] == 1


@pytest.mark.anyio("asyncio")
async def test_lifecycle_changes_are_broadcast(client, alert_store, broadcaster):
    loop = asyncio.get_running_loop()
    connection = broadcaster.register(Connection(loop=loop, queue=asyncio.Queue()))
    broadcaster.subscribe(connection.id, ALERTS_TOPIC)

    resp = await client.post(f"{BASE}/test", json={"title": "Pushed"})
    alert_id = resp.json()["data"]["id"]
    await client.post(f"{BASE}/{alert_id}/acknowledge")

    new_frame = await asyncio.wait_for(connection.queue.get(), timeout=2)
    update_frame = await asyncio.wait_for(connection.queue.get(), timeout=2)
    assert new_frame["event"] == "alert:new"
    assert new_frame["data"]["id"] == alert_id
    assert update_frame["event"] == "alert:update"
    assert update_frame["data"]["status"] == "acknowledged"


@pytest.mark.anyio("asyncio")
async def test_test_alert_hidden_in_production(client, monkeypatch):
    from app.config import get_settings

    monkeypatch.setattr(get_settings(), "app_env", "production")
    resp = await client.post(f"{BASE}/test", json={})
    assert resp.status_code == 404
