"""User schemas."""
import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.school import SchoolRead


class UserSummary(BaseModel):
    """Owner reference attached to jobs and conversations."""

    id: uuid.UUID
    email: str
    username: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfileRead(BaseModel):
    full_name: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    school_id: int | None = None
    school: SchoolRead | None = None

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    id: uuid.UUID
    username: str | None = None
    email: str
    user_type: str
    is_active: bool
    token_balance: int
    last_login: datetime | None = None
    auth_provider: str | None = None
    federation_status: str | None = None
    created_at: datetime
    updated_at: datetime
    profile: ProfileRead | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, max_length=255)
    date_of_birth: date | None = None
    gender: str | None = Field(default=None, max_length=20)
    school_id: int | None = None


class UserUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=1, max_length=255)
    is_active: bool | None = None
    user_type: str | None = Field(default=None, pattern="^(user|admin|superadmin)$")
    federation_status: str | None = Field(default=None, max_length=50)
    profile: ProfileUpdate | None = None


class TokenAdjust(BaseModel):
    amount: int
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("amount must not be zero")
        return value
