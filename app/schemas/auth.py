"""Admin authentication schemas."""
import uuid

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AdminPrincipal(BaseModel):
    """Admin identity returned by the auth service."""

    id: str
    email: str | None = None
    username: str | None = None
    user_type: str

    @property
    def actor_uuid(self) -> uuid.UUID | None:
        """The id as a UUID for audit rows, or ``None`` when it is not one."""
        try:
            return uuid.UUID(self.id)
        except ValueError:
            return None
