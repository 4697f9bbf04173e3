"""Analysis job monitoring endpoints."""
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.filters import JobFilters
from app.security import require_admin
from app.services import jobs as jobs_service
from app.services.query_builder import ListQuery
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/jobs", tags=["jobs"], dependencies=[Depends(require_admin)])


@router.get("/stats")
def job_stats(db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(jobs_service.get_job_stats(db), "Job statistics retrieved successfully")


@router.get("")
def list_jobs(
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    status: str | None = Query(default=None),
    user_id: uuid.UUID | None = Query(default=None),
    user_email: str | None = Query(default=None),
    user_username: str | None = Query(default=None),
    assessment_name: str | None = Query(default=None),
    date_from: str | None = Query(default=None),
    date_to: str | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """List jobs; ``user_email``/``user_username`` match the owning account."""

    filters = JobFilters(
        status=status,
        user_id=user_id,
        user_email=user_email,
        user_username=user_username,
        assessment_name=assessment_name,
        date_from=date_from,
        date_to=date_to,
    )
    query = ListQuery.build(jobs_service.JOB_SPEC, page, limit, sort_by, sort_order)
    return success_response(jobs_service.list_jobs(db, filters, query), "Jobs retrieved successfully")


@router.get("/{job_id}/results")
def job_results(job_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(jobs_service.get_job_results(db, job_id), "Job results retrieved successfully")


@router.get("/{job_pk}")
def get_job(job_pk: uuid.UUID, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(jobs_service.get_job(db, job_pk), "Job retrieved successfully")
