import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool
from starlette.websockets import WebSocketDisconnect

from app.db import build_engine, get_session_factory
from app.main import app
from app.services.realtime import JOB_UPDATES_TOPIC

WS_URL = "/admin/ws"


@pytest.fixture
def ws_client():
    return TestClient(app)


def test_connect_receives_job_stats(ws_client, fake_auth_client, make_user, make_job):
    make_job(make_user().id, status="completed")

    with ws_client.websocket_connect(f"{WS_URL}?token=good-token") as ws:
        frame = ws.receive_json()

    assert frame["event"] == "job-stats"
    assert frame["data"]["overview"]["completed"] >= 1
    assert fake_auth_client.verified == ["good-token"]


def test_bearer_header_is_accepted(ws_client, fake_auth_client):
    with ws_client.websocket_connect(WS_URL, headers={"Authorization": "Bearer header-token"}) as ws:
        assert ws.receive_json()["event"] == "job-stats"
    assert fake_auth_client.verified == ["header-token"]


def test_missing_token_is_rejected(ws_client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with ws_client.websocket_connect(WS_URL) as ws:
            ws.receive_json()
    assert excinfo.value.code == 1008


def test_invalid_token_is_rejected(ws_client, broadcaster):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with ws_client.websocket_connect(f"{WS_URL}?token=bad-token") as ws:
            ws.receive_json()
    assert excinfo.value.code == 1008
    assert broadcaster.connection_count() == 0


def test_alerts_are_pushed_without_explicit_subscription(ws_client):
    with ws_client.websocket_connect(f"{WS_URL}?token=good-token") as ws:
        assert ws.receive_json()["event"] == "job-stats"

        resp = ws_client.post("/admin/system/alerts/test", json={"severity": "critical", "title": "Queue stalled"})
        assert resp.status_code == 201

        frame = ws.receive_json()

    assert frame["event"] == "alert:new"
    assert frame["data"]["title"] == "Queue stalled"
    assert frame["data"]["severity"] == "critical"


def test_job_subscription_round_trip(ws_client, broadcaster):
    with ws_client.websocket_connect(f"{WS_URL}?token=good-token") as ws:
        ws.receive_json()
        ws.send_json({"event": "subscribe:jobs"})
        ws.send_json({"event": "request:job-stats"})
        assert ws.receive_json()["event"] == "job-stats"

        assert broadcaster.publish(JOB_UPDATES_TOPIC, "job-update", {"event": "created"}) == 1
        frame = ws.receive_json()
        assert frame == {"event": "job-update", "data": {"event": "created"}}

        ws.send_json({"event": "unsubscribe:jobs"})
        ws.send_json({"event": "request:job-stats"})
        ws.receive_json()
        assert broadcaster.publish(JOB_UPDATES_TOPIC, "job-update", {"event": "updated"}) == 0

    assert broadcaster.connection_count() == 0


def test_unknown_and_malformed_messages_get_error_frames(ws_client):
    with ws_client.websocket_connect(f"{WS_URL}?token=good-token") as ws:
        ws.receive_json()

        ws.send_json({"event": "launch:rockets"})
        unknown = ws.receive_json()
        ws.send_text("{not json")
        malformed = ws.receive_json()

    assert unknown["event"] == "error"
    assert "launch:rockets" in unknown["data"]["message"]
    assert malformed == {"event": "error", "data": {"message": "Invalid message"}}


@pytest.fixture
def pooled_engine():
    engine = build_engine(
        os.environ["DATABASE_URL"],
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
        connect_args={"check_same_thread": False},
    )
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    app.dependency_overrides[get_session_factory] = lambda: factory
    try:
        yield engine
    finally:
        engine.dispose()


def test_idle_socket_holds_no_pooled_connection(ws_client, pooled_engine):
    with ws_client.websocket_connect(f"{WS_URL}?token=good-token") as ws:
        assert ws.receive_json()["event"] == "job-stats"
        assert pooled_engine.pool.checkedout() == 0

        ws.send_json({"event": "request:job-stats"})
        assert ws.receive_json()["event"] == "job-stats"
        assert pooled_engine.pool.checkedout() == 0

        with pooled_engine.connect() as conn:
            assert conn.exec_driver_sql("SELECT 1").scalar() == 1
