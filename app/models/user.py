"""Auth-schema models: users, profiles and schools."""
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AUTH_SCHEMA, PUBLIC_SCHEMA, Base, CreatedAtMixin, JSONType, TimestampMixin


class School(CreatedAtMixin, Base):
    """A school; stored in the public schema but read through the auth connection."""

    __tablename__ = "schools"
    __table_args__ = {"schema": PUBLIC_SCHEMA}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    province: Mapped[str | None] = mapped_column(String(100), nullable=True)


class User(TimestampMixin, Base):
    """Represents a platform account owned by the auth service."""

    __tablename__ = "users"
    __table_args__ = {"schema": AUTH_SCHEMA}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_type: Mapped[str] = mapped_column(String(50), default="user", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    token_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    auth_provider: Mapped[str | None] = mapped_column(String(50), default="local", nullable=True)
    provider_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    federation_status: Mapped[str | None] = mapped_column(String(50), default="active", nullable=True)

    profile: Mapped[Optional["UserProfile"]] = relationship(
        back_populates="user", uselist=False, lazy="selectin"
    )


class UserProfile(TimestampMixin, Base):
    """Optional personal details attached to a user."""

    __tablename__ = "user_profiles"
    __table_args__ = {"schema": AUTH_SCHEMA}

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey(f"{AUTH_SCHEMA}.users.id"), primary_key=True
    )
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # Plain reference: schools.id is not constrained from this table.
    school_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    user: Mapped[User] = relationship(back_populates="profile")
    school: Mapped[School | None] = relationship(
        School,
        primaryjoin="foreign(UserProfile.school_id) == School.id",
        viewonly=True,
        lazy="selectin",
    )
