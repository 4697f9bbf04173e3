"""Conversation and message schemas."""
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.user import UserSummary


class ConversationBrief(BaseModel):
    id: uuid.UUID
    title: str | None = None
    status: str | None = None
    context_type: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationRead(ConversationBrief):
    user_id: uuid.UUID
    context_data: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    user: UserSummary | None = None
    message_count: int = Field(default=0, serialization_alias="messageCount")


class ConversationDetail(ConversationRead):
    total_tokens: int = Field(default=0, serialization_alias="totalTokens")
    total_cost: float = Field(default=0.0, serialization_alias="totalCost")


class MessageRead(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_type: str
    content: str
    content_type: str | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    parent_message_id: uuid.UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
