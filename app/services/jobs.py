"""Analysis job monitoring service."""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Callable

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models import AnalysisJob, AnalysisResult, JobStatus, SystemMetric, User
from app.schemas.filters import JobFilters
from app.schemas.job import JobBrief, JobDetail, JobRead, ResultRead
from app.services.cross_filters import CrossCollectionFilter
from app.services.query_builder import EntitySpec, FieldFilter, ListQuery, Match, build_plan, fetch_page
from app.services.users import get_user_or_404, load_owners
from app.utils.errors import NotFoundError
from app.utils.pagination import paginate
from app.utils.retry import call_with_retry
from app.utils.time import elapsed_seconds, start_of_day, utcnow

logger = logging.getLogger(__name__)

RESOURCE_METRICS = ("cpu_usage", "memory_usage", "queue_size")
PROCESSING_SAMPLE = 100
DAILY_WINDOW_DAYS = 7

USER_CROSS_FILTER = CrossCollectionFilter(
    foreign_model=User,
    foreign_key=User.id,
    local_key=AnalysisJob.user_id,
    fields=(
        FieldFilter("user_email", (User.email,), Match.ICONTAINS),
        FieldFilter("user_username", (User.username,), Match.ICONTAINS),
    ),
)

JOB_SPEC = EntitySpec(
    name="jobs",
    model=AnalysisJob,
    sort_columns={
        "created_at": AnalysisJob.created_at,
        "updated_at": AnalysisJob.updated_at,
        "completed_at": AnalysisJob.completed_at,
        "status": AnalysisJob.status,
        "priority": AnalysisJob.priority,
    },
    default_limit=50,
    filters=(
        FieldFilter("status", (AnalysisJob.status,)),
        FieldFilter("user_id", (AnalysisJob.user_id,)),
        FieldFilter("assessment_name", (AnalysisJob.assessment_name,), Match.ICONTAINS),
        FieldFilter("date_from", (AnalysisJob.created_at,), Match.GTE),
        FieldFilter("date_to", (AnalysisJob.created_at,), Match.LTE),
    ),
    cross_filters=(USER_CROSS_FILTER,),
)


def _processing_seconds(job: AnalysisJob) -> int | None:
    seconds = elapsed_seconds(job.processing_started_at, job.completed_at)
    return round(seconds) if seconds is not None else None


def get_job_stats(db: Session) -> dict[str, Any]:
    """Dashboard numbers: status overview, today, performance, daily breakdown, resources."""

    status_rows = db.execute(
        select(AnalysisJob.status, func.count(AnalysisJob.id)).group_by(AnalysisJob.status)
    ).all()
    status_map = {status: int(count) for status, count in status_rows}

    today = start_of_day()
    today_total = db.execute(
        select(func.count(AnalysisJob.id)).where(AnalysisJob.created_at >= today)
    ).scalar_one()
    today_completed = db.execute(
        select(func.count(AnalysisJob.id)).where(
            AnalysisJob.status == JobStatus.COMPLETED, AnalysisJob.completed_at >= today
        )
    ).scalar_one()
    today_failed = db.execute(
        select(func.count(AnalysisJob.id)).where(
            AnalysisJob.status == JobStatus.FAILED, AnalysisJob.updated_at >= today
        )
    ).scalar_one()

    completed = status_map.get(JobStatus.COMPLETED, 0)
    failed = status_map.get(JobStatus.FAILED, 0)
    processed = completed + failed
    success_rate = round(completed / processed * 100, 2) if processed else 0.0

    recent = db.execute(
        select(AnalysisJob.processing_started_at, AnalysisJob.completed_at)
        .where(
            AnalysisJob.status == JobStatus.COMPLETED,
            AnalysisJob.processing_started_at.is_not(None),
            AnalysisJob.completed_at.is_not(None),
        )
        .order_by(AnalysisJob.completed_at.desc())
        .limit(PROCESSING_SAMPLE)
    ).all()
    durations = [elapsed_seconds(started, finished) for started, finished in recent]
    durations = [value for value in durations if value is not None]
    avg_seconds = round(sum(durations) / len(durations)) if durations else 0

    day = func.date(AnalysisJob.created_at)
    daily_rows = db.execute(
        select(
            day.label("date"),
            func.count(AnalysisJob.id).label("total"),
            func.sum(case((AnalysisJob.status == JobStatus.COMPLETED, 1), else_=0)).label("completed"),
            func.sum(case((AnalysisJob.status == JobStatus.FAILED, 1), else_=0)).label("failed"),
        )
        .where(AnalysisJob.created_at >= utcnow() - timedelta(days=DAILY_WINDOW_DAYS))
        .group_by(day)
        .order_by(day)
    ).all()

    metrics = db.scalars(
        select(SystemMetric)
        .where(SystemMetric.metric_name.in_(RESOURCE_METRICS))
        .order_by(SystemMetric.recorded_at.desc())
        .limit(len(RESOURCE_METRICS) * 10)
    ).all()
    resources: dict[str, Any] = {}
    for metric in metrics:
        if metric.metric_name in resources:
            continue
        resources[metric.metric_name] = {
            "value": float(metric.metric_value) if metric.metric_value is not None else None,
            "data": metric.metric_data,
            "recorded_at": metric.recorded_at,
        }

    return {
        "overview": {
            "total": sum(status_map.values()),
            "queued": status_map.get(JobStatus.QUEUED, 0),
            "processing": status_map.get(JobStatus.PROCESSING, 0),
            "completed": completed,
            "failed": failed,
            "cancelled": status_map.get(JobStatus.CANCELLED, 0),
            "successRate": success_rate,
        },
        "today": {"total": today_total, "completed": today_completed, "failed": today_failed},
        "performance": {
            "avgProcessingTimeSeconds": avg_seconds,
            "avgProcessingTimeMinutes": round(avg_seconds / 60, 2),
        },
        "dailyMetrics": [
            {
                "date": str(row.date),
                "total": int(row.total),
                "completed": int(row.completed or 0),
                "failed": int(row.failed or 0),
            }
            for row in daily_rows
        ],
        "resourceUtilization": resources,
    }


def _with_owners(db: Session, jobs: list[AnalysisJob]) -> list[JobRead]:
    owners = load_owners(db, (job.user_id for job in jobs))
    return [
        JobRead.model_validate(job).model_copy(update={"user": owners.get(job.user_id)})
        for job in jobs
    ]


def list_jobs(db: Session, filters: JobFilters, query: ListQuery) -> dict[str, Any]:
    plan = build_plan(JOB_SPEC, query, filters, db=db)
    rows, total = fetch_page(db, plan)
    return paginate(JOB_SPEC.name, _with_owners(db, rows), total=total, page=query.page, limit=query.limit)


def list_user_jobs(db: Session, user_id: uuid.UUID, query: ListQuery) -> dict[str, Any]:
    get_user_or_404(db, user_id)
    plan = build_plan(JOB_SPEC, query, None, db=db, extra=[AnalysisJob.user_id == user_id])
    rows, total = fetch_page(db, plan)
    return paginate(
        JOB_SPEC.name,
        [JobRead.model_validate(row) for row in rows],
        total=total,
        page=query.page,
        limit=query.limit,
    )


def get_job(db: Session, job_pk: uuid.UUID) -> JobDetail:
    job = db.get(AnalysisJob, job_pk)
    if job is None:
        raise NotFoundError("Job not found", details={"id": str(job_pk)})
    owners = load_owners(db, [job.user_id])
    return JobDetail.model_validate(job).model_copy(
        update={"user": owners.get(job.user_id), "processing_time_seconds": _processing_seconds(job)}
    )


def _fetch_results(db: Session, job_id: str) -> dict[str, Any]:
    job = db.scalars(select(AnalysisJob).where(AnalysisJob.job_id == job_id)).first()
    if job is None:
        raise NotFoundError("Job not found", details={"job_id": job_id})
    if job.result_id is None:
        raise NotFoundError("Job has no results yet", details={"job_id": job_id})
    result = db.get(AnalysisResult, job.result_id)
    if result is None:
        raise NotFoundError("Result not found", details={"job_id": job_id, "result_id": str(job.result_id)})
    return {"job": JobBrief.model_validate(job), "result": ResultRead.model_validate(result)}


def get_job_results(
    db: Session,
    job_id: str,
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    sleep: Callable[[float], None] | None = None,
) -> dict[str, Any]:
    """Fetch the result of an external ``job_id``; transient store failures are retried."""

    settings = get_settings()
    options: dict[str, Any] = {}
    if sleep is not None:
        options["sleep"] = sleep
    return call_with_retry(
        _fetch_results,
        db,
        job_id,
        attempts=attempts if attempts is not None else settings.RETRY_ATTEMPTS,
        base_delay=base_delay if base_delay is not None else settings.RETRY_BASE_DELAY_SECONDS,
        on_retry=lambda exc, attempt: db.rollback(),
        **options,
    )


__all__ = [
    "JOB_SPEC",
    "USER_CROSS_FILTER",
    "get_job",
    "get_job_results",
    "get_job_stats",
    "list_jobs",
    "list_user_jobs",
]
