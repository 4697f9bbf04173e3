"""User administration endpoints."""
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.auth import AdminPrincipal
from app.schemas.filters import UserFilters
from app.schemas.user import TokenAdjust, UserUpdate
from app.security import require_admin
from app.services import chat as chat_service
from app.services import jobs as jobs_service
from app.services import users as users_service
from app.services.query_builder import ListQuery
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/users", tags=["users"], dependencies=[Depends(require_admin)])


def _client_info(request: Request) -> dict[str, str | None]:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


@router.get("")
def list_users(
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    search: str | None = Query(default=None),
    user_type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    auth_provider: str | None = Query(default=None),
    school_id: int | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """List users with search, filters and sorting."""

    filters = UserFilters(
        search=search,
        user_type=user_type,
        is_active=is_active,
        auth_provider=auth_provider,
        school_id=school_id,
    )
    query = ListQuery.build(users_service.USER_SPEC, page, limit, sort_by, sort_order)
    return success_response(users_service.list_users(db, filters, query), "Users retrieved successfully")


@router.get("/{user_id}")
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(users_service.get_user_detail(db, user_id), "User retrieved successfully")


@router.put("/{user_id}")
def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
) -> dict[str, Any]:
    user = users_service.update_user(
        db, user_id, payload, admin_id=admin.actor_uuid, **_client_info(request)
    )
    return success_response(user, "User updated successfully")


@router.get("/{user_id}/tokens")
def get_user_tokens(user_id: uuid.UUID, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(users_service.get_user_tokens(db, user_id), "Token history retrieved successfully")


@router.put("/{user_id}/tokens")
def adjust_user_tokens(
    user_id: uuid.UUID,
    payload: TokenAdjust,
    request: Request,
    db: Session = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
) -> dict[str, Any]:
    """Add or deduct tokens; the balance may not go negative."""

    result = users_service.adjust_user_tokens(
        db, user_id, payload, admin_id=admin.actor_uuid, **_client_info(request)
    )
    return success_response(result, "Token balance updated successfully")


@router.get("/{user_id}/jobs")
def list_user_jobs(
    user_id: uuid.UUID,
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    query = ListQuery.build(jobs_service.JOB_SPEC, page, limit if limit is not None else 20, sort_by, sort_order)
    return success_response(jobs_service.list_user_jobs(db, user_id, query), "User jobs retrieved successfully")


@router.get("/{user_id}/conversations")
def list_user_conversations(
    user_id: uuid.UUID,
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    query = ListQuery.build(chat_service.CONVERSATION_SPEC, page, limit, sort_by, sort_order)
    return success_response(
        chat_service.list_user_conversations(db, user_id, query),
        "User conversations retrieved successfully",
    )
