"""School schemas."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SchoolRead(BaseModel):
    id: int
    name: str
    address: str | None = None
    city: str | None = None
    province: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SchoolDetail(SchoolRead):
    user_count: int = Field(default=0, serialization_alias="userCount")


class SchoolCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: str | None = None
    city: str | None = Field(default=None, max_length=100)
    province: str | None = Field(default=None, max_length=100)


class SchoolUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    address: str | None = None
    city: str | None = Field(default=None, max_length=100)
    province: str | None = Field(default=None, max_length=100)
