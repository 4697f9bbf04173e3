"""Chatbot conversations, messages and usage statistics."""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Iterable

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from app.models import Conversation, Message, UsageTracking, User
from app.schemas.conversation import ConversationBrief, ConversationDetail, ConversationRead, MessageRead
from app.schemas.filters import ConversationFilters, MessageFilters
from app.services.cross_filters import CrossCollectionFilter
from app.services.query_builder import EntitySpec, FieldFilter, ListQuery, Match, build_plan, fetch_page
from app.services.users import get_user_or_404, load_owners
from app.utils.errors import NotFoundError
from app.utils.pagination import paginate
from app.utils.time import start_of_day, utcnow

logger = logging.getLogger(__name__)

DAILY_WINDOW_DAYS = 7

CONVERSATION_SPEC = EntitySpec(
    name="conversations",
    model=Conversation,
    sort_columns={
        "created_at": Conversation.created_at,
        "updated_at": Conversation.updated_at,
        "title": Conversation.title,
        "status": Conversation.status,
    },
    default_limit=20,
    filters=(
        FieldFilter("status", (Conversation.status,)),
        FieldFilter("user_id", (Conversation.user_id,)),
        FieldFilter("context_type", (Conversation.context_type,)),
        FieldFilter("search", (Conversation.title,), Match.ICONTAINS),
        FieldFilter("date_from", (Conversation.created_at,), Match.GTE),
        FieldFilter("date_to", (Conversation.created_at,), Match.LTE),
    ),
    cross_filters=(
        CrossCollectionFilter(
            foreign_model=User,
            foreign_key=User.id,
            local_key=Conversation.user_id,
            fields=(
                FieldFilter("user_email", (User.email,), Match.ICONTAINS),
                FieldFilter("user_username", (User.username,), Match.ICONTAINS),
            ),
        ),
    ),
)

MESSAGE_SPEC = EntitySpec(
    name="messages",
    model=Message,
    sort_columns={"created_at": Message.created_at},
    default_order="ASC",
    default_limit=50,
    filters=(
        FieldFilter("sender_type", (Message.sender_type,)),
        FieldFilter("content_type", (Message.content_type,)),
    ),
)


def _message_counts(db: Session, conversation_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, int]:
    ids = list(conversation_ids)
    if not ids:
        return {}
    rows = db.execute(
        select(Message.conversation_id, func.count(Message.id))
        .where(Message.conversation_id.in_(ids))
        .group_by(Message.conversation_id)
    ).all()
    return {conversation_id: int(count) for conversation_id, count in rows}


def _decorate(db: Session, conversations: list[Conversation]) -> list[ConversationRead]:
    owners = load_owners(db, (conv.user_id for conv in conversations))
    counts = _message_counts(db, (conv.id for conv in conversations))
    return [
        ConversationRead.model_validate(conv).model_copy(
            update={"user": owners.get(conv.user_id), "message_count": counts.get(conv.id, 0)}
        )
        for conv in conversations
    ]


def get_conversation_or_404(db: Session, conversation_id: uuid.UUID) -> Conversation:
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found", details={"id": str(conversation_id)})
    return conversation


def list_conversations(db: Session, filters: ConversationFilters, query: ListQuery) -> dict[str, Any]:
    plan = build_plan(CONVERSATION_SPEC, query, filters, db=db)
    rows, total = fetch_page(db, plan)
    return paginate(
        CONVERSATION_SPEC.name, _decorate(db, rows), total=total, page=query.page, limit=query.limit
    )


def list_user_conversations(db: Session, user_id: uuid.UUID, query: ListQuery) -> dict[str, Any]:
    get_user_or_404(db, user_id)
    plan = build_plan(CONVERSATION_SPEC, query, None, db=db, extra=[Conversation.user_id == user_id])
    rows, total = fetch_page(db, plan)
    return paginate(
        CONVERSATION_SPEC.name,
        [ConversationBrief.model_validate(row) for row in rows],
        total=total,
        page=query.page,
        limit=query.limit,
    )


def get_conversation(db: Session, conversation_id: uuid.UUID) -> ConversationDetail:
    conversation = get_conversation_or_404(db, conversation_id)
    message_count = db.execute(
        select(func.count(Message.id)).where(Message.conversation_id == conversation_id)
    ).scalar_one()
    tokens, cost = db.execute(
        select(func.sum(UsageTracking.total_tokens), func.sum(UsageTracking.cost_credits)).where(
            UsageTracking.conversation_id == conversation_id
        )
    ).one()
    owners = load_owners(db, [conversation.user_id])
    return ConversationDetail.model_validate(conversation).model_copy(
        update={
            "user": owners.get(conversation.user_id),
            "message_count": int(message_count),
            "total_tokens": int(tokens or 0),
            "total_cost": float(cost or 0),
        }
    )


def list_messages(
    db: Session, conversation_id: uuid.UUID, filters: MessageFilters, query: ListQuery
) -> dict[str, Any]:
    """Messages of one conversation, oldest first by default."""

    conversation = get_conversation_or_404(db, conversation_id)
    plan = build_plan(MESSAGE_SPEC, query, filters, extra=[Message.conversation_id == conversation_id])
    rows, total = fetch_page(db, plan)
    envelope = paginate(
        MESSAGE_SPEC.name,
        [MessageRead.model_validate(row) for row in rows],
        total=total,
        page=query.page,
        limit=query.limit,
    )
    envelope["conversation"] = {
        "id": conversation.id,
        "title": conversation.title,
        "status": conversation.status,
        "context_type": conversation.context_type,
    }
    return envelope


def _daily_counts(db: Session, column: Any, pk: Any, key: str) -> list[dict[str, Any]]:
    day = func.date(column)
    rows = db.execute(
        select(day.label("date"), func.count(pk).label("count"))
        .where(column >= utcnow() - timedelta(days=DAILY_WINDOW_DAYS))
        .group_by(day)
        .order_by(day)
    ).all()
    return [{"date": str(row.date), key: int(row.count)} for row in rows]


def get_chatbot_stats(db: Session) -> dict[str, Any]:
    total_conversations = db.execute(select(func.count(Conversation.id))).scalar_one()
    total_messages = db.execute(select(func.count(Message.id))).scalar_one()
    active_conversations = db.execute(
        select(func.count(Conversation.id)).where(Conversation.status == "active")
    ).scalar_one()

    today = start_of_day()
    today_conversations = db.execute(
        select(func.count(Conversation.id)).where(Conversation.created_at >= today)
    ).scalar_one()
    today_messages = db.execute(
        select(func.count(Message.id)).where(Message.created_at >= today)
    ).scalar_one()

    model_rows = db.execute(
        select(
            UsageTracking.model_used,
            func.count(UsageTracking.id),
            func.sum(UsageTracking.total_tokens),
            func.avg(UsageTracking.processing_time_ms),
        ).group_by(UsageTracking.model_used)
    ).all()

    avg_time, prompt_tokens, completion_tokens, total_tokens, total_cost = db.execute(
        select(
            func.avg(UsageTracking.processing_time_ms),
            func.sum(UsageTracking.prompt_tokens),
            func.sum(UsageTracking.completion_tokens),
            func.sum(UsageTracking.total_tokens),
            func.sum(UsageTracking.cost_credits),
        )
    ).one()
    avg_ms = float(avg_time or 0)

    status_rows = db.execute(
        select(Conversation.status, func.count(Conversation.id)).group_by(Conversation.status)
    ).all()

    return {
        "overview": {
            "totalConversations": total_conversations,
            "totalMessages": total_messages,
            "activeConversations": active_conversations,
            "avgMessagesPerConversation": (
                round(total_messages / total_conversations, 2) if total_conversations else 0
            ),
        },
        "today": {"conversations": today_conversations, "messages": today_messages},
        "modelUsage": [
            {
                "model": model,
                "count": int(count),
                "totalTokens": int(tokens or 0),
                "avgProcessingTime": float(avg or 0),
            }
            for model, count, tokens, avg in model_rows
        ],
        "performance": {
            "avgResponseTimeMs": avg_ms,
            "avgResponseTimeSeconds": round(avg_ms / 1000, 2),
        },
        "tokenUsage": {
            "totalPromptTokens": int(prompt_tokens or 0),
            "totalCompletionTokens": int(completion_tokens or 0),
            "totalTokens": int(total_tokens or 0),
            "totalCost": float(total_cost or 0),
        },
        "statusBreakdown": {status: int(count) for status, count in status_rows},
        "dailyMetrics": _daily_counts(db, Conversation.created_at, Conversation.id, "conversations"),
        "dailyMessages": _daily_counts(db, Message.created_at, Message.id, "messages"),
    }


def get_models(db: Session) -> dict[str, Any]:
    """Per-model usage summary, most used first."""

    usage_count = func.count(UsageTracking.id)
    totals = (
        select(
            UsageTracking.model_used,
            usage_count.label("usage_count"),
            func.sum(UsageTracking.total_tokens).label("total_tokens"),
            func.avg(UsageTracking.processing_time_ms).label("avg_processing_time"),
            func.sum(case((UsageTracking.is_free_model.is_(True), 1), else_=0)).label("free_usage_count"),
            func.max(UsageTracking.created_at).label("last_used"),
        )
        .group_by(UsageTracking.model_used)
        .subquery()
    )
    # The free flag of a model is taken from its most recent usage row.
    ranked = select(
        UsageTracking.model_used,
        UsageTracking.is_free_model,
        func.row_number()
        .over(
            partition_by=UsageTracking.model_used,
            order_by=(UsageTracking.created_at.desc(), UsageTracking.id.desc()),
        )
        .label("position"),
    ).subquery()
    rows = db.execute(
        select(totals, ranked.c.is_free_model.label("latest_free"))
        .join(
            ranked,
            and_(ranked.c.model_used == totals.c.model_used, ranked.c.position == 1),
        )
        .order_by(totals.c.usage_count.desc())
    ).all()

    models = []
    for row in rows:
        models.append(
            {
                "model": row.model_used,
                "usageCount": int(row.usage_count),
                "totalTokens": int(row.total_tokens or 0),
                "avgProcessingTimeMs": float(row.avg_processing_time or 0),
                "freeUsageCount": int(row.free_usage_count or 0),
                "isFreeModel": bool(row.latest_free),
                "lastUsed": row.last_used,
            }
        )

    return {
        "models": models,
        "summary": {
            "totalModels": len(models),
            "freeModels": sum(1 for model in models if model["isFreeModel"]),
            "paidModels": sum(1 for model in models if not model["isFreeModel"]),
        },
    }


__all__ = [
    "CONVERSATION_SPEC",
    "MESSAGE_SPEC",
    "get_chatbot_stats",
    "get_conversation",
    "get_conversation_or_404",
    "get_models",
    "list_conversations",
    "list_messages",
    "list_user_conversations",
]
