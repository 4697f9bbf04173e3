"""Declarative base model for SQLAlchemy.

Tables live in schemas owned by other services. The admin service never
creates or migrates them in production; the metadata only describes the
columns it reads and writes.
"""
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

AUTH_SCHEMA = "auth"
PUBLIC_SCHEMA = "public"
ARCHIVE_SCHEMA = "archive"
CHAT_SCHEMA = "chat"

SCHEMAS = (AUTH_SCHEMA, PUBLIC_SCHEMA, ARCHIVE_SCHEMA, CHAT_SCHEMA)

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class TimestampMixin(CreatedAtMixin):
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
