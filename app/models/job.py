"""Archive-schema models for assessment analysis jobs."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import ARCHIVE_SCHEMA, Base, JSONType, TimestampMixin


class JobStatus:
    QUEUED = "queue"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AnalysisJob(TimestampMixin, Base):
    """An analysis job queued by the assessment service."""

    __tablename__ = "analysis_jobs"
    __table_args__ = {"schema": ARCHIVE_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    # References auth.users.id across schemas; no constraint exists.
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(50), default=JobStatus.QUEUED, nullable=False, index=True)
    result_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assessment_name: Mapped[str] = mapped_column(
        String(255), default="AI-Driven Talent Mapping", nullable=False
    )
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AnalysisResult(TimestampMixin, Base):
    """Result payload produced for a completed job."""

    __tablename__ = "analysis_results"
    __table_args__ = {"schema": ARCHIVE_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    test_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    test_result: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    raw_responses: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    chatbot_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
