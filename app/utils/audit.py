"""Audit logging helper utilities."""
from __future__ import annotations

import uuid
from typing import Any, Mapping

from sqlalchemy.orm import Session

from app.models.activity import SYSTEM_ACTOR_ID, UserActivityLog
from app.utils.time import utcnow


SENSITIVE_KEYS = {
    "password",
    "password_hash",
    "token",
    "access_token",
    "email",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key == "email":
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"

    return "***"


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with credentials and obvious PII masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            masked_value = _mask_value(key, value) if key in SENSITIVE_KEYS else value
            sanitized[key] = sanitize_payload_for_audit(masked_value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_activity(
    db: Session,
    *,
    admin_id: uuid.UUID | None,
    activity_type: str,
    user_id: uuid.UUID | None = None,
    data: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> UserActivityLog:
    """Stage an entry in archive.user_activity_logs; the caller commits."""

    entry = UserActivityLog(
        user_id=user_id,
        admin_id=admin_id or SYSTEM_ACTOR_ID,
        activity_type=activity_type,
        activity_data=sanitize_payload_for_audit(data or {}),
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


__all__ = ["SENSITIVE_KEYS", "log_activity", "sanitize_payload_for_audit"]
