"""System health, resource and metric endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.auth import AdminPrincipal
from app.schemas.system import MetricCreate, MetricRead
from app.security import require_admin
from app.services import system as system_service
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/system", tags=["system"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.get("/health")
def system_health(admin: AdminPrincipal = Depends(require_admin)) -> dict[str, Any]:
    logger.info("Getting system health", extra={"admin_id": admin.id})
    return success_response(system_service.system_health(), "System health retrieved successfully")


@router.get("/metrics")
def system_metrics(db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(system_service.system_metrics(db), "System metrics retrieved successfully")


@router.post("/metrics", status_code=status.HTTP_201_CREATED)
def record_metric(payload: MetricCreate, db: Session = Depends(get_db)) -> dict[str, Any]:
    metric = system_service.record_metric(db, payload.metric_name, payload.metric_value, payload.metric_data)
    return success_response(MetricRead.model_validate(metric), "System metric recorded successfully")


@router.get("/database")
def database_health() -> dict[str, Any]:
    return success_response(system_service.database_health(), "Database health retrieved successfully")


@router.get("/resources")
def system_resources() -> dict[str, Any]:
    return success_response(system_service.system_resources(), "System resources retrieved successfully")
