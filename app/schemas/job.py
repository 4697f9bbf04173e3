"""Analysis job schemas."""
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.user import UserSummary


class JobRead(BaseModel):
    id: uuid.UUID
    job_id: str
    user_id: uuid.UUID
    status: str
    result_id: uuid.UUID | None = None
    error_message: str | None = None
    assessment_name: str
    priority: int
    retry_count: int
    max_retries: int
    processing_started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None

    model_config = ConfigDict(from_attributes=True)


class JobDetail(JobRead):
    processing_time_seconds: int | None = Field(default=None, serialization_alias="processingTimeSeconds")


class JobBrief(BaseModel):
    """Compact job row used in user detail and result lookups."""

    id: uuid.UUID
    job_id: str
    status: str
    assessment_name: str
    created_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ResultRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    test_data: dict[str, Any] | None = None
    test_result: dict[str, Any] | None = None
    raw_responses: dict[str, Any] | None = None
    is_public: bool
    chatbot_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
