"""Chat-schema models."""
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import CHAT_SCHEMA, Base, CreatedAtMixin, JSONType, TimestampMixin


class Conversation(TimestampMixin, Base):
    """A chatbot conversation."""

    __tablename__ = "conversations"
    __table_args__ = {"schema": CHAT_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # References auth.users.id across schemas; no constraint exists.
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(255), default="New Conversation", nullable=True)
    context_type: Mapped[str | None] = mapped_column(String(50), default="general", nullable=True)
    context_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), default="active", nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)


class Message(CreatedAtMixin, Base):
    __tablename__ = "messages"
    __table_args__ = {"schema": CHAT_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    sender_type: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(50), default="text", nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    parent_message_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)


class UsageTracking(CreatedAtMixin, Base):
    """Token accounting for a single model call."""

    __tablename__ = "usage_tracking"
    __table_args__ = {"schema": CHAT_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    message_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    model_used: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completion_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_tokens: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cost_credits: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), default=0, nullable=True)
    is_free_model: Mapped[bool | None] = mapped_column(Boolean, default=False, nullable=True)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
