"""System health, resource usage and platform metrics."""
from __future__ import annotations

import logging
import os
import platform
import time
from datetime import timedelta
from decimal import Decimal
from typing import Any

import psutil
from sqlalchemy import case, func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import AppInfo, get_settings
from app.db import get_engine
from app.models import AnalysisJob, Conversation, JobStatus, Message, School, SystemMetric, UsageTracking, User
from app.utils.time import elapsed_seconds, utcnow

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
DEGRADED = "degraded"

# One representative table per logical schema.
SCHEMA_PROBES = {
    "auth": User,
    "public": School,
    "archive": AnalysisJob,
    "chat": Conversation,
}
# Losing either of these makes the service unusable rather than degraded.
CRITICAL_SCHEMAS = ("auth", "archive")

METRICS_WINDOW = timedelta(hours=24)
BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_bytes(size: int | float) -> str:
    """Render a byte count as ``"1.5 GB"``."""

    if size <= 0:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {BYTE_UNITS[unit]}"


def probe_schema(model: Any) -> dict[str, Any]:
    """Run a trivial read against ``model``'s table and time it."""

    started = time.perf_counter()
    try:
        with get_engine().connect() as conn:
            conn.execute(select(literal_column("1")).select_from(model.__table__).limit(1))
    except SQLAlchemyError as exc:
        logger.warning("Schema health check failed", extra={"table": model.__tablename__, "error": str(exc)})
        return {"status": UNHEALTHY, "error": str(exc)}
    elapsed_ms = round((time.perf_counter() - started) * 1000)
    return {"status": HEALTHY, "responseTime": f"{elapsed_ms}ms"}


def database_health() -> dict[str, dict[str, Any]]:
    return {name: probe_schema(model) for name, model in SCHEMA_PROBES.items()}


def all_healthy(databases: dict[str, dict[str, Any]]) -> bool:
    return all(entry["status"] == HEALTHY for entry in databases.values())


def process_uptime() -> float:
    return round(time.time() - psutil.Process(os.getpid()).create_time(), 2)


def system_resources() -> dict[str, Any]:
    """Host CPU and memory plus the footprint of this process."""

    memory = psutil.virtual_memory()
    process = psutil.Process(os.getpid())
    return {
        "cpu": {
            "cores": psutil.cpu_count() or 0,
            "model": platform.processor() or "Unknown",
            "loadAverage": [round(value, 2) for value in psutil.getloadavg()],
        },
        "memory": {
            "total": format_bytes(memory.total),
            "used": format_bytes(memory.used),
            "free": format_bytes(memory.available),
            "usagePercent": round(memory.percent, 2),
        },
        "process": {
            "memory": format_bytes(process.memory_info().rss),
            "pid": process.pid,
            "uptime": process_uptime(),
        },
    }


def system_health() -> dict[str, Any]:
    """Overall status: unhealthy when a critical schema is down, degraded for any other failure."""

    databases = database_health()
    if any(databases[name]["status"] != HEALTHY for name in CRITICAL_SCHEMAS):
        overall = UNHEALTHY
    elif not all_healthy(databases):
        overall = DEGRADED
    else:
        overall = HEALTHY

    return {
        "status": overall,
        "timestamp": utcnow().isoformat(),
        "uptime": process_uptime(),
        "environment": get_settings().app_env,
        "version": AppInfo().version,
        "database": databases,
        "resources": system_resources(),
    }


def job_metrics(db: Session) -> dict[str, Any]:
    since = utcnow() - METRICS_WINDOW

    def by_status(value: str) -> Any:
        return func.sum(case((AnalysisJob.status == value, 1), else_=0))

    total, completed, failed, processing, queued = db.execute(
        select(
            func.count(AnalysisJob.id),
            by_status(JobStatus.COMPLETED),
            by_status(JobStatus.FAILED),
            by_status(JobStatus.PROCESSING),
            by_status(JobStatus.QUEUED),
        ).where(AnalysisJob.created_at >= since)
    ).one()

    finished = db.execute(
        select(AnalysisJob.created_at, AnalysisJob.completed_at).where(
            AnalysisJob.created_at >= since,
            AnalysisJob.status == JobStatus.COMPLETED,
            AnalysisJob.completed_at.is_not(None),
        )
    ).all()
    durations = [elapsed_seconds(created, done) for created, done in finished]
    durations = [value for value in durations if value is not None]

    return {
        "totalJobs": int(total or 0),
        "completedJobs": int(completed or 0),
        "failedJobs": int(failed or 0),
        "processingJobs": int(processing or 0),
        "queuedJobs": int(queued or 0),
        "avgProcessingTimeSeconds": round(sum(durations) / len(durations), 2) if durations else None,
    }


def user_metrics(db: Session) -> dict[str, Any]:
    since = utcnow() - METRICS_WINDOW
    total, active, new_today, active_today, tokens = db.execute(
        select(
            func.count(User.id),
            func.sum(case((User.is_active.is_(True), 1), else_=0)),
            func.sum(case((User.created_at >= since, 1), else_=0)),
            func.sum(case((User.last_login >= since, 1), else_=0)),
            func.sum(User.token_balance),
        )
    ).one()
    return {
        "totalUsers": int(total or 0),
        "activeUsers": int(active or 0),
        "newUsersToday": int(new_today or 0),
        "activeToday": int(active_today or 0),
        "totalTokens": int(tokens or 0),
    }


def chat_metrics(db: Session) -> dict[str, Any]:
    since = utcnow() - METRICS_WINDOW
    conversations, conversations_today = db.execute(
        select(
            func.count(Conversation.id),
            func.sum(case((Conversation.created_at >= since, 1), else_=0)),
        )
    ).one()
    messages, messages_today = db.execute(
        select(
            func.count(Message.id),
            func.sum(case((Message.created_at >= since, 1), else_=0)),
        )
    ).one()
    tokens = db.execute(select(func.coalesce(func.sum(UsageTracking.total_tokens), 0))).scalar_one()
    return {
        "totalConversations": int(conversations or 0),
        "conversationsToday": int(conversations_today or 0),
        "totalMessages": int(messages or 0),
        "messagesToday": int(messages_today or 0),
        "totalTokensUsed": int(tokens or 0),
    }


def system_metrics(db: Session) -> dict[str, Any]:
    """Platform activity over the last 24 hours plus current resource usage."""

    return {
        "timestamp": utcnow().isoformat(),
        "jobs": job_metrics(db),
        "users": user_metrics(db),
        "chat": chat_metrics(db),
        "system": system_resources(),
    }


def record_metric(
    db: Session, name: str, value: float | None, data: dict[str, Any] | None = None
) -> SystemMetric:
    metric = SystemMetric(
        metric_name=name,
        metric_value=Decimal(str(value)) if value is not None else None,
        metric_data=data,
        recorded_at=utcnow(),
    )
    db.add(metric)
    db.commit()
    logger.debug("System metric recorded", extra={"metric_name": name, "metric_value": value})
    return metric


__all__ = [
    "CRITICAL_SCHEMAS",
    "SCHEMA_PROBES",
    "all_healthy",
    "chat_metrics",
    "database_health",
    "format_bytes",
    "job_metrics",
    "probe_schema",
    "record_metric",
    "system_health",
    "system_metrics",
    "system_resources",
    "user_metrics",
]
