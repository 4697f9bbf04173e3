"""School directory service."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import School, UserProfile
from app.schemas.filters import SchoolFilters
from app.schemas.school import SchoolCreate, SchoolDetail, SchoolRead, SchoolUpdate
from app.services.query_builder import EntitySpec, FieldFilter, ListQuery, Match, build_plan, fetch_page
from app.utils.errors import NotFoundError, ValidationError
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

SCHOOL_SPEC = EntitySpec(
    name="schools",
    model=School,
    sort_columns={
        "name": School.name,
        "city": School.city,
        "province": School.province,
        "created_at": School.created_at,
    },
    default_limit=20,
    filters=(
        FieldFilter("search", (School.name, School.city, School.province), Match.ICONTAINS),
        FieldFilter("city", (School.city,)),
        FieldFilter("province", (School.province,)),
    ),
)


def _get_or_404(db: Session, school_id: int) -> School:
    school = db.get(School, school_id)
    if school is None:
        raise NotFoundError("School not found", details={"id": school_id})
    return school


def _user_count(db: Session, school_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(UserProfile).where(UserProfile.school_id == school_id)
    ).scalar_one()


def list_schools(db: Session, filters: SchoolFilters, query: ListQuery) -> dict[str, Any]:
    plan = build_plan(SCHOOL_SPEC, query, filters)
    rows, total = fetch_page(db, plan)
    return paginate(
        SCHOOL_SPEC.name,
        [SchoolRead.model_validate(row) for row in rows],
        total=total,
        page=query.page,
        limit=query.limit,
    )


def get_school(db: Session, school_id: int) -> SchoolDetail:
    school = _get_or_404(db, school_id)
    return SchoolDetail.model_validate(school).model_copy(update={"user_count": _user_count(db, school_id)})


def create_school(db: Session, payload: SchoolCreate) -> SchoolRead:
    school = School(**payload.model_dump())
    db.add(school)
    db.commit()
    db.refresh(school)
    logger.info("School created", extra={"school_id": school.id, "name": school.name})
    return SchoolRead.model_validate(school)


def update_school(db: Session, school_id: int, payload: SchoolUpdate) -> SchoolRead:
    school = _get_or_404(db, school_id)
    updates = payload.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(school, field, value)
    db.commit()
    db.refresh(school)
    logger.info("School updated", extra={"school_id": school.id, "fields": sorted(updates)})
    return SchoolRead.model_validate(school)


def delete_school(db: Session, school_id: int) -> None:
    """Delete a school unless user profiles still reference it."""

    school = _get_or_404(db, school_id)
    user_count = _user_count(db, school_id)
    if user_count > 0:
        raise ValidationError(
            f"Cannot delete school. {user_count} user(s) are associated with this school.",
            details={"id": school_id, "userCount": user_count},
        )
    db.delete(school)
    db.commit()
    logger.info("School deleted", extra={"school_id": school_id, "name": school.name})


__all__ = [
    "SCHOOL_SPEC",
    "create_school",
    "delete_school",
    "get_school",
    "list_schools",
    "update_school",
]
