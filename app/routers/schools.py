"""School directory endpoints."""
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.filters import SchoolFilters
from app.schemas.school import SchoolCreate, SchoolUpdate
from app.security import require_admin
from app.services import schools as schools_service
from app.services.query_builder import ListQuery
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/schools", tags=["schools"], dependencies=[Depends(require_admin)])


@router.get("")
def list_schools(
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    search: str | None = Query(default=None),
    city: str | None = Query(default=None),
    province: str | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    filters = SchoolFilters(search=search, city=city, province=province)
    query = ListQuery.build(schools_service.SCHOOL_SPEC, page, limit, sort_by, sort_order)
    return success_response(schools_service.list_schools(db, filters, query), "Schools retrieved successfully")


@router.get("/{school_id}")
def get_school(school_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(schools_service.get_school(db, school_id), "School retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_school(payload: SchoolCreate, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(schools_service.create_school(db, payload), "School created successfully")


@router.put("/{school_id}")
def update_school(school_id: int, payload: SchoolUpdate, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(schools_service.update_school(db, school_id, payload), "School updated successfully")


@router.delete("/{school_id}")
def delete_school(school_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Delete a school; refused while user profiles still reference it."""

    schools_service.delete_school(db, school_id)
    return success_response(None, "School deleted successfully")
