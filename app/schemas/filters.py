"""Per-entity list filters.

Every field is optional; blank strings are treated as absent so that
``?status=`` behaves like an omitted parameter.
"""
from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from app.schemas.alert import AlertSeverity, AlertStatus, AlertType


class ListFilters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: (None if isinstance(value, str) and not value.strip() else value)
                for key, value in data.items()
            }
        return data


class UserFilters(ListFilters):
    search: str | None = None
    user_type: str | None = None
    is_active: bool | None = None
    auth_provider: str | None = None
    school_id: int | None = None


class JobFilters(ListFilters):
    status: str | None = None
    user_id: uuid.UUID | None = None
    user_email: str | None = None
    user_username: str | None = None
    assessment_name: str | None = None
    date_from: str | None = None
    date_to: str | None = None


class ConversationFilters(ListFilters):
    status: str | None = None
    user_id: uuid.UUID | None = None
    context_type: str | None = None
    search: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    user_email: str | None = None
    user_username: str | None = None


class MessageFilters(ListFilters):
    sender_type: str | None = None
    content_type: str | None = None


class SchoolFilters(ListFilters):
    search: str | None = None
    city: str | None = None
    province: str | None = None


class AlertFilters(ListFilters):
    type: AlertType | None = None
    severity: AlertSeverity | None = None
    status: AlertStatus | None = None


__all__ = [
    "AlertFilters",
    "ConversationFilters",
    "JobFilters",
    "ListFilters",
    "MessageFilters",
    "SchoolFilters",
    "UserFilters",
]
