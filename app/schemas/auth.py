"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import UserRole


class UserSession(BaseModel):
    """
    Session context for authenticated requests.

    Returned by the get_current_session dependency.
    """
    user_id: UUID
    role: UserRole  # Validated enum
    email: str
    name: str


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=72)


class MeResponse(BaseModel):
    """Response schema for GET /auth/me and POST /auth/login."""
    user_id: UUID
    email: str
    name: str
    role: UserRole
