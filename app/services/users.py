"""User administration service."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import AnalysisJob, Conversation, User, UserActivityLog, UserProfile
from app.schemas.conversation import ConversationBrief
from app.schemas.filters import UserFilters
from app.schemas.job import JobBrief
from app.schemas.user import TokenAdjust, UserRead, UserSummary, UserUpdate
from app.services.query_builder import EntitySpec, FieldFilter, ListQuery, Match, build_plan, fetch_page
from app.utils.audit import log_activity
from app.utils.errors import NotFoundError, ValidationError
from app.utils.pagination import paginate

logger = logging.getLogger(__name__)

TOKEN_ACTIVITY_TYPES = ("TOKEN_UPDATE", "TOKEN_REFUND", "TOKEN_DEDUCTION")
TOKEN_HISTORY_LIMIT = 50
RECENT_ITEMS = 5


def _school_clause(school_id: int):
    return User.id.in_(select(UserProfile.user_id).where(UserProfile.school_id == school_id))


USER_SPEC = EntitySpec(
    name="users",
    model=User,
    sort_columns={
        "created_at": User.created_at,
        "updated_at": User.updated_at,
        "email": User.email,
        "username": User.username,
        "token_balance": User.token_balance,
        "last_login": User.last_login,
    },
    default_limit=20,
    filters=(
        FieldFilter("search", (User.email, User.username), Match.ICONTAINS),
        FieldFilter("user_type", (User.user_type,)),
        FieldFilter("is_active", (User.is_active,)),
        FieldFilter("auth_provider", (User.auth_provider,)),
        FieldFilter("school_id", clause=_school_clause),
    ),
)


def load_owners(db: Session, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, UserSummary]:
    """Resolve owner references in one query; unknown ids are simply absent."""

    ids = {user_id for user_id in user_ids if user_id is not None}
    if not ids:
        return {}
    rows = db.execute(select(User.id, User.email, User.username).where(User.id.in_(ids))).all()
    return {row.id: UserSummary(id=row.id, email=row.email, username=row.username) for row in rows}


def get_user_or_404(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", details={"id": str(user_id)})
    return user


def list_users(db: Session, filters: UserFilters, query: ListQuery) -> dict[str, Any]:
    plan = build_plan(USER_SPEC, query, filters, db=db)
    rows, total = fetch_page(db, plan)
    return paginate(
        USER_SPEC.name,
        [UserRead.model_validate(row) for row in rows],
        total=total,
        page=query.page,
        limit=query.limit,
    )


def get_user_detail(db: Session, user_id: uuid.UUID) -> dict[str, Any]:
    """Return the user with job counts by status, conversation count and recent activity."""

    user = get_user_or_404(db, user_id)

    job_counts = db.execute(
        select(AnalysisJob.status, func.count(AnalysisJob.id))
        .where(AnalysisJob.user_id == user_id)
        .group_by(AnalysisJob.status)
    ).all()
    conversation_count = db.execute(
        select(func.count(Conversation.id)).where(Conversation.user_id == user_id)
    ).scalar_one()

    recent_jobs = db.scalars(
        select(AnalysisJob)
        .where(AnalysisJob.user_id == user_id)
        .order_by(AnalysisJob.created_at.desc(), AnalysisJob.id.desc())
        .limit(RECENT_ITEMS)
    ).all()
    recent_conversations = db.scalars(
        select(Conversation)
        .where(Conversation.user_id == user_id)
        .order_by(Conversation.created_at.desc(), Conversation.id.desc())
        .limit(RECENT_ITEMS)
    ).all()

    return {
        "user": UserRead.model_validate(user),
        "statistics": {
            "jobs": {status: count for status, count in job_counts},
            "conversations": conversation_count,
        },
        "recentJobs": [JobBrief.model_validate(job) for job in recent_jobs],
        "recentConversations": [ConversationBrief.model_validate(conv) for conv in recent_conversations],
    }


def update_user(
    db: Session,
    user_id: uuid.UUID,
    payload: UserUpdate,
    *,
    admin_id: uuid.UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> UserRead:
    user = get_user_or_404(db, user_id)

    updates = payload.model_dump(exclude_unset=True, exclude={"profile"})
    for field, value in updates.items():
        setattr(user, field, value)

    profile_updates: dict[str, Any] | None = None
    if payload.profile is not None:
        profile_updates = payload.profile.model_dump(exclude_unset=True)
        if profile_updates:
            profile = user.profile
            if profile is None:
                profile = UserProfile(user_id=user.id)
                db.add(profile)
                user.profile = profile
            for field, value in profile_updates.items():
                setattr(profile, field, value)

    log_activity(
        db,
        admin_id=admin_id,
        activity_type="USER_UPDATE",
        user_id=user.id,
        data={"updates": updates, "profileUpdates": profile_updates},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.commit()
    db.refresh(user)
    logger.info("User updated", extra={"user_id": str(user_id), "admin_id": str(admin_id), "fields": sorted(updates)})
    return UserRead.model_validate(user)


def get_user_tokens(db: Session, user_id: uuid.UUID) -> dict[str, Any]:
    user = get_user_or_404(db, user_id)
    history = db.scalars(
        select(UserActivityLog)
        .where(
            UserActivityLog.user_id == user_id,
            UserActivityLog.activity_type.in_(TOKEN_ACTIVITY_TYPES),
        )
        .order_by(UserActivityLog.created_at.desc())
        .limit(TOKEN_HISTORY_LIMIT)
    ).all()
    return {
        "currentBalance": user.token_balance,
        "history": [
            {
                "id": entry.id,
                "activity_type": entry.activity_type,
                "activity_data": entry.activity_data,
                "admin_id": entry.admin_id,
                "created_at": entry.created_at,
            }
            for entry in history
        ],
    }


def adjust_user_tokens(
    db: Session,
    user_id: uuid.UUID,
    payload: TokenAdjust,
    *,
    admin_id: uuid.UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict[str, Any]:
    """Add ``payload.amount`` (may be negative) to the balance; it may not drop below zero."""

    user = db.scalars(select(User).where(User.id == user_id).with_for_update()).one_or_none()
    if user is None:
        raise NotFoundError("User not found", details={"id": str(user_id)})

    old_balance = user.token_balance
    new_balance = old_balance + payload.amount
    if new_balance < 0:
        raise ValidationError(
            "Insufficient token balance",
            details={"currentBalance": old_balance, "amount": payload.amount},
        )

    user.token_balance = new_balance
    log_activity(
        db,
        admin_id=admin_id,
        activity_type="TOKEN_UPDATE" if payload.amount > 0 else "TOKEN_DEDUCTION",
        user_id=user.id,
        data={
            "oldBalance": old_balance,
            "newBalance": new_balance,
            "amount": payload.amount,
            "reason": payload.reason,
        },
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.commit()
    logger.info(
        "User token balance updated",
        extra={
            "user_id": str(user_id),
            "old_balance": old_balance,
            "new_balance": new_balance,
            "amount": payload.amount,
            "admin_id": str(admin_id),
        },
    )
    return {
        "userId": user.id,
        "email": user.email,
        "oldBalance": old_balance,
        "newBalance": new_balance,
        "amount": payload.amount,
    }


__all__ = [
    "TOKEN_ACTIVITY_TYPES",
    "USER_SPEC",
    "adjust_user_tokens",
    "get_user_detail",
    "get_user_or_404",
    "get_user_tokens",
    "list_users",
    "load_owners",
    "update_user",
]
