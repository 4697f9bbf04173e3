"""System alert endpoints."""
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.config import get_settings
from app.db import get_db
from app.schemas.alert import AlertCreate, AlertResolve, AlertSeverity, AlertStatus, AlertType
from app.schemas.auth import AdminPrincipal
from app.schemas.filters import AlertFilters
from app.security import require_admin
from app.services import alerts as alert_service
from app.services.alerts import AlertStore, get_alert_store
from app.services.query_builder import EntitySpec, ListQuery
from app.services.realtime import Broadcaster, get_broadcaster
from app.utils.errors import NotFoundError
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/system/alerts", tags=["alerts"], dependencies=[Depends(require_admin)])

# Paging bounds only; alerts are filtered in memory, not through SQL.
ALERT_PAGING = EntitySpec(name="alerts", model=None, sort_columns={}, default_limit=50)


@router.get("")
def list_alerts(
    alert_type: AlertType | None = Query(default=None, alias="type"),
    severity: AlertSeverity | None = Query(default=None),
    alert_status: AlertStatus | None = Query(default=None, alias="status"),
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    store: AlertStore = Depends(get_alert_store),
) -> dict[str, Any]:
    filters = AlertFilters(type=alert_type, severity=severity, status=alert_status)
    query = ListQuery.build(ALERT_PAGING, page, limit)
    return success_response(alert_service.list_alerts(store, filters, query), "Alerts retrieved successfully")


@router.get("/stats")
def alert_stats(store: AlertStore = Depends(get_alert_store)) -> dict[str, Any]:
    return success_response(alert_service.alert_stats(store), "Alert statistics retrieved successfully")


@router.post("/test", status_code=status.HTTP_201_CREATED)
def create_test_alert(
    payload: AlertCreate,
    db: Session = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
    store: AlertStore = Depends(get_alert_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    """Raise a synthetic alert; unavailable in production."""

    if get_settings().is_production:
        raise NotFoundError("Not found")
    data = {**payload.data, "test": True, "createdBy": admin.id}
    alert = alert_service.create_alert(
        store,
        payload.model_copy(
            update={
                "title": payload.title or "Test Alert",
                "message": payload.message or "This is a test alert",
                "data": data,
            }
        ),
        broadcaster=broadcaster,
        db=db,
    )
    return success_response(alert, "Test alert created successfully")


@router.get("/{alert_id}")
def get_alert(alert_id: str, store: AlertStore = Depends(get_alert_store)) -> dict[str, Any]:
    return success_response(alert_service.get_alert(store, alert_id), "Alert retrieved successfully")


@router.post("/{alert_id}/acknowledge")
def acknowledge_alert(
    alert_id: str,
    admin: AdminPrincipal = Depends(require_admin),
    store: AlertStore = Depends(get_alert_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    alert = alert_service.acknowledge_alert(store, alert_id, admin.id, broadcaster=broadcaster)
    return success_response(alert, "Alert acknowledged successfully")


@router.post("/{alert_id}/resolve")
def resolve_alert(
    alert_id: str,
    payload: AlertResolve,
    admin: AdminPrincipal = Depends(require_admin),
    store: AlertStore = Depends(get_alert_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> dict[str, Any]:
    alert = alert_service.resolve_alert(store, alert_id, admin.id, payload.resolution, broadcaster=broadcaster)
    return success_response(alert, "Alert resolved successfully")
