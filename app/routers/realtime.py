"""WebSocket endpoint pushing job statistics and alert events."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db import get_session_factory
from app.security import get_auth_client
from app.services.auth_client import AuthServiceClient
from app.services.jobs import get_job_stats
from app.services.realtime import (
    ALERTS_TOPIC,
    JOB_UPDATES_TOPIC,
    Broadcaster,
    Connection,
    get_broadcaster,
)
from app.utils.errors import AppError

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = {
    "subscribe:jobs": (True, JOB_UPDATES_TOPIC),
    "unsubscribe:jobs": (False, JOB_UPDATES_TOPIC),
    "subscribe:alerts": (True, ALERTS_TOPIC),
    "unsubscribe:alerts": (False, ALERTS_TOPIC),
}


def _handshake_token(websocket: WebSocket, token: str | None) -> str | None:
    if token:
        return token.strip() or None
    authorization = websocket.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        frame = await queue.get()
        await websocket.send_json(frame)


def _compute_job_stats(session_factory: Callable[[], Session]) -> dict[str, Any]:
    db = session_factory()
    try:
        return get_job_stats(db)
    finally:
        db.close()


async def _push_job_stats(
    session_factory: Callable[[], Session], broadcaster: Broadcaster, connection: Connection
) -> None:
    try:
        stats = await run_in_threadpool(_compute_job_stats, session_factory)
    except Exception:
        logger.exception("Error sending job stats", extra={"connection_id": connection.id})
        broadcaster.send(connection.id, "error", {"message": "Failed to fetch job statistics"})
        return
    broadcaster.send(connection.id, "job-stats", stats)


async def _handle_event(
    message: Any,
    session_factory: Callable[[], Session],
    broadcaster: Broadcaster,
    connection: Connection,
) -> None:
    event = message.get("event") if isinstance(message, dict) else None
    if event in SUBSCRIPTION_EVENTS:
        subscribe, topic = SUBSCRIPTION_EVENTS[event]
        if subscribe:
            broadcaster.subscribe(connection.id, topic)
        else:
            broadcaster.unsubscribe(connection.id, topic)
    elif event == "request:job-stats":
        await _push_job_stats(session_factory, broadcaster, connection)
    else:
        broadcaster.send(connection.id, "error", {"message": f"Unknown event: {event}"})


@router.websocket("/admin/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    auth_client: AuthServiceClient = Depends(get_auth_client),
) -> None:
    """Authenticated push channel; clients are subscribed to alerts on connect."""

    settings = get_settings()
    credential = _handshake_token(websocket, token)
    if credential is None:
        logger.warning("WebSocket connection rejected: no token provided")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    principal_id: str | None = None
    if settings.WS_VERIFY_TOKEN:
        try:
            principal = await run_in_threadpool(auth_client.verify_token, credential)
        except AppError as exc:
            logger.warning("WebSocket connection rejected", extra={"code": exc.code})
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        principal_id = principal.id

    await websocket.accept()
    connection = broadcaster.register(
        Connection(
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=settings.WS_QUEUE_SIZE),
            principal_id=principal_id,
        )
    )
    broadcaster.subscribe(connection.id, ALERTS_TOPIC)
    sender = asyncio.create_task(_pump(websocket, connection.queue))
    try:
        await _push_job_stats(session_factory, broadcaster, connection)
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                broadcaster.send(connection.id, "error", {"message": "Invalid message"})
                continue
            await _handle_event(message, session_factory, broadcaster, connection)
    except WebSocketDisconnect as exc:
        logger.info("WebSocket client disconnected", extra={"connection_id": connection.id, "code": exc.code})
    finally:
        broadcaster.unregister(connection.id)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
