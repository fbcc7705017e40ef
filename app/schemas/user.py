"""User management schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.db.enums import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=6, max_length=72)
    role: UserRole = UserRole.SUPPORT
    is_active: bool = True


class UserUpdate(BaseModel):
    """Partial update. role/is_active are CEO-only (enforced in router)."""
    email: EmailStr | None = None
    name: str | None = Field(None, min_length=2, max_length=100)
    password: str | None = Field(None, min_length=6, max_length=72)
    role: UserRole | None = None
    is_active: bool | None = None


class UserRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    email: str
    name: str
    role: UserRole
    is_active: bool
    created_at: datetime


class UserSummary(BaseModel):
    """Compact user reference embedded in other responses."""
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    email: str
