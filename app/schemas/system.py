"""System metric schemas."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MetricCreate(BaseModel):
    metric_name: str = Field(min_length=1, max_length=100)
    metric_value: float | None = None
    metric_data: dict[str, Any] | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetricRead(BaseModel):
    id: uuid.UUID
    metric_name: str
    metric_value: float | None = None
    metric_data: dict[str, Any] | None = None
    recorded_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)
