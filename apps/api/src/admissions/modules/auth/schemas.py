"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)


class StaffResponse(BaseModel):
    """Staff account as returned to the dashboard."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    is_active: bool
    created_at: datetime


class LoginResponse(BaseModel):
    """Login response schema."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    staff: StaffResponse


class LogoutResponse(BaseModel):
    """Logout response schema."""

    message: str = "Signed out."
    revoked: bool
