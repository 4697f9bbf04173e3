"""Alert schemas."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AlertType(str, enum.Enum):
    SYSTEM = "system"
    JOB = "job"
    USER = "user"
    CHAT = "chat"
    PERFORMANCE = "performance"
    SECURITY = "security"


class AlertSeverity(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AlertStatus(str, enum.Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Alert(BaseModel):
    """An operational alert; serialized with camelCase keys."""

    id: str
    type: AlertType = AlertType.SYSTEM
    severity: AlertSeverity = AlertSeverity.INFO
    title: str | None = None
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    resolution: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AlertCreate(BaseModel):
    type: AlertType = AlertType.SYSTEM
    severity: AlertSeverity = AlertSeverity.INFO
    title: str | None = Field(default=None, min_length=1, max_length=200)
    message: str | None = Field(default=None, min_length=1, max_length=1000)
    data: dict[str, Any] = Field(default_factory=dict)


class AlertResolve(BaseModel):
    resolution: str = Field(min_length=1, max_length=1000)


class AlertStats(BaseModel):
    total: int
    active: int
    acknowledged: int
    resolved: int
    by_severity: dict[str, int]
    by_type: dict[str, int]

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
