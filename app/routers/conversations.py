"""Conversation browsing and chatbot statistics endpoints."""
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.filters import ConversationFilters, MessageFilters
from app.security import require_admin
from app.services import chat as chat_service
from app.services.query_builder import ListQuery
from app.utils.responses import success_response

router = APIRouter(prefix="/admin/conversations", tags=["conversations"], dependencies=[Depends(require_admin)])
chatbot_router = APIRouter(prefix="/admin/chatbot", tags=["chatbot"], dependencies=[Depends(require_admin)])


@router.get("")
def list_conversations(
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    status: str | None = Query(default=None),
    user_id: uuid.UUID | None = Query(default=None),
    context_type: str | None = Query(default=None),
    search: str | None = Query(default=None),
    date_from: str | None = Query(default=None),
    date_to: str | None = Query(default=None),
    user_email: str | None = Query(default=None),
    user_username: str | None = Query(default=None),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    filters = ConversationFilters(
        status=status,
        user_id=user_id,
        context_type=context_type,
        search=search,
        date_from=date_from,
        date_to=date_to,
        user_email=user_email,
        user_username=user_username,
    )
    query = ListQuery.build(chat_service.CONVERSATION_SPEC, page, limit, sort_by, sort_order)
    return success_response(
        chat_service.list_conversations(db, filters, query), "Conversations retrieved successfully"
    )


@router.get("/{conversation_id}")
def get_conversation(conversation_id: uuid.UUID, db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(
        chat_service.get_conversation(db, conversation_id), "Conversation retrieved successfully"
    )


@router.get("/{conversation_id}/chats")
def list_messages(
    conversation_id: uuid.UUID,
    page: int | None = Query(default=None),
    limit: int | None = Query(default=None),
    sender_type: str | None = Query(default=None),
    content_type: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    filters = MessageFilters(sender_type=sender_type, content_type=content_type)
    query = ListQuery.build(chat_service.MESSAGE_SPEC, page, limit, None, sort_order)
    return success_response(
        chat_service.list_messages(db, conversation_id, filters, query), "Messages retrieved successfully"
    )


@chatbot_router.get("/stats")
def chatbot_stats(db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(chat_service.get_chatbot_stats(db), "Chatbot statistics retrieved successfully")


@chatbot_router.get("/models")
def chatbot_models(db: Session = Depends(get_db)) -> dict[str, Any]:
    return success_response(chat_service.get_models(db), "Model usage retrieved successfully")
