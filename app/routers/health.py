"""Health, readiness and liveness endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response, status

from app.config import AppInfo, get_settings
from app.core.runtime_state import is_stats_broadcast_active
from app.services import system as system_service
from app.services.alerts import AlertStore, get_alert_store
from app.services.realtime import Broadcaster, get_broadcaster
from app.utils.errors import ServiceUnavailableError
from app.utils.responses import success_response

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)


def _schema_status(model) -> str:
    """Return 'ok' if the schema's probe table is reachable, 'error' otherwise."""

    probe = system_service.probe_schema(model)
    return "ok" if probe["status"] == system_service.HEALTHY else "error"


@router.get("", summary="Health check")
def healthcheck(
    store: AlertStore = Depends(get_alert_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, object]:
    """Return per-schema reachability plus realtime and alert telemetry."""

    settings = get_settings()
    databases = {name: _schema_status(model) for name, model in system_service.SCHEMA_PROBES.items()}
    degraded = any(value != "ok" for value in databases.values())
    info = AppInfo()
    return {
        "status": "degraded" if degraded else "ok",
        "service": info.name,
        "version": info.version,
        "env": settings.app_env,
        "databases": databases,
        "stats_broadcast_enabled": settings.STATS_BROADCAST_ENABLED,
        "stats_broadcast_running": is_stats_broadcast_active(),
        "realtime_connections": broadcaster.connection_count(),
        "alerts_in_memory": store.size(),
    }


@router.get("/detailed", summary="Detailed health check")
def detailed_healthcheck(response: Response) -> dict[str, object]:
    """Per-schema timings and process memory; answers 503 when any schema is down."""

    databases = system_service.database_health()
    healthy = system_service.all_healthy(databases)
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    info = AppInfo()
    resources = system_service.system_resources()
    return success_response(
        {
            "status": system_service.HEALTHY if healthy else system_service.DEGRADED,
            "service": info.name,
            "version": info.version,
            "environment": get_settings().app_env,
            "uptime": system_service.process_uptime(),
            "database": databases,
            "memory": resources["process"]["memory"],
        },
        "Detailed health check completed",
    )


@router.get("/ready", summary="Readiness probe")
def readiness() -> dict[str, object]:
    databases = system_service.database_health()
    if not system_service.all_healthy(databases):
        logger.warning("Readiness check failed", extra={"databases": databases})
        raise ServiceUnavailableError("Service is not ready")
    return success_response({"ready": True}, "Service is ready")


@router.get("/live", summary="Liveness probe")
def liveness() -> dict[str, object]:
    return success_response({"alive": True}, "Service is alive")
