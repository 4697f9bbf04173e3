import os
from datetime import UTC, datetime, timedelta

import pytest

from app.models import AnalysisJob, Conversation, JobStatus
from app.services import system as system_service


def _fail_for(monkeypatch, *failing):
    real_check = system_service.probe_schema

    def fake_check(model):
        if model in failing:
            return {"status": system_service.UNHEALTHY, "error": "connection refused"}
        return real_check(model)

    monkeypatch.setattr(system_service, "probe_schema", fake_check)


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 Bytes"),
        (1023, "1023 Bytes"),
        (1536, "1.5 KB"),
        (1024**3, "1 GB"),
        (5 * 1024**4, "5 TB"),
    ],
)
def test_format_bytes(size, expected):
    assert system_service.format_bytes(size) == expected


@pytest.mark.anyio("asyncio")
async def test_system_health_times_each_schema(client):
    resp = await client.get("/admin/system/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "System health retrieved successfully"
    data = body["data"]
    assert data["status"] == "healthy"
    assert set(data["database"]) == {"auth", "public", "archive", "chat"}
    assert all(entry["responseTime"].endswith("ms") for entry in data["database"].values())
    assert data["resources"]["cpu"]["cores"] >= 1
    assert data["uptime"] >= 0


@pytest.mark.anyio("asyncio")
async def test_system_health_distinguishes_critical_schemas(client, monkeypatch):
    _fail_for(monkeypatch, Conversation)
    degraded = (await client.get("/admin/system/health")).json()["data"]
    assert degraded["status"] == "degraded"
    assert degraded["database"]["chat"]["error"] == "connection refused"

    _fail_for(monkeypatch, AnalysisJob)
    unhealthy = (await client.get("/admin/system/health")).json()["data"]
    assert unhealthy["status"] == "unhealthy"


@pytest.mark.anyio("asyncio")
async def test_metrics_cover_last_day(client, make_user, make_job, make_conversation):
    active = make_user("metric-active", token_balance=5)
    make_user("metric-inactive", token_balance=7, is_active=False)
    make_job(active.id, status=JobStatus.COMPLETED, processing_seconds=90)
    make_job(active.id, status=JobStatus.FAILED)
    make_job(active.id)
    make_job(active.id, created_at=datetime.now(tz=UTC) - timedelta(days=3))
    make_conversation(active.id, messages=4)

    resp = await client.get("/admin/system/metrics")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["jobs"] == {
        "totalJobs": 3,
        "completedJobs": 1,
        "failedJobs": 1,
        "processingJobs": 0,
        "queuedJobs": 1,
        "avgProcessingTimeSeconds": 90.0,
    }
    assert data["users"]["totalUsers"] == 2
    assert data["users"]["activeUsers"] == 1
    assert data["users"]["newUsersToday"] == 2
    assert data["users"]["totalTokens"] == 12
    assert data["chat"]["totalConversations"] == 1
    assert data["chat"]["messagesToday"] == 4
    assert data["chat"]["totalTokensUsed"] == 0
    assert "memory" in data["system"]


@pytest.mark.anyio("asyncio")
async def test_recorded_metric_feeds_job_stats(client):
    resp = await client.post(
        "/admin/system/metrics",
        json={"metricName": "queue_size", "metricValue": 12, "metricData": {"queue": "analysis"}},
    )

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["metricName"] == "queue_size"
    assert data["metricValue"] == 12.0

    stats = (await client.get("/admin/jobs/stats")).json()["data"]
    assert stats["resourceUtilization"]["queue_size"]["value"] == 12.0
    assert stats["resourceUtilization"]["queue_size"]["data"] == {"queue": "analysis"}


@pytest.mark.anyio("asyncio")
async def test_recording_metric_requires_name(client):
    resp = await client.post("/admin/system/metrics", json={"metricValue": 1})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio("asyncio")
async def test_database_and_resources_endpoints(client):
    database = (await client.get("/admin/system/database")).json()["data"]
    assert {entry["status"] for entry in database.values()} == {"healthy"}

    resources = (await client.get("/admin/system/resources")).json()["data"]
    assert resources["process"]["pid"] == os.getpid()
    assert 0 <= resources["memory"]["usagePercent"] <= 100
    assert len(resources["cpu"]["loadAverage"]) == 3


@pytest.mark.anyio("asyncio")
async def test_system_routes_require_admin(client):
    from app.main import app
    from app.security import require_admin

    app.dependency_overrides.pop(require_admin, None)
    resp = await client.get("/admin/system/resources")
    assert resp.status_code == 401
