"""Archive-schema audit and metrics tables."""
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import ARCHIVE_SCHEMA, Base, CreatedAtMixin, JSONType, _utcnow

# Actor recorded for entries written by the service itself.
SYSTEM_ACTOR_ID = uuid.UUID(int=0)


class UserActivityLog(CreatedAtMixin, Base):
    """Audit trail of administrative actions."""

    __tablename__ = "user_activity_logs"
    __table_args__ = {"schema": ARCHIVE_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    admin_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    activity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    activity_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)


class SystemMetric(Base):
    """A sampled resource metric written by the worker fleet."""

    __tablename__ = "system_metrics"
    __table_args__ = {"schema": ARCHIVE_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    metric_name: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_value: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    metric_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    recorded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=True)
