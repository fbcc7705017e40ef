"""Case type schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import CaseCategory, Severity


class CaseTypeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    category: CaseCategory
    default_severity: Severity = Severity.NORMAL
    default_sla_minutes: int = Field(120, ge=5, le=10080)  # 5 min to 1 week
    require_provider: bool = False
    require_order_id: bool = False
    line_notification: bool = False
    description: str | None = Field(None, max_length=500)
    is_active: bool = True


class CaseTypeUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    category: CaseCategory | None = None
    default_severity: Severity | None = None
    default_sla_minutes: int | None = Field(None, ge=5, le=10080)
    require_provider: bool | None = None
    require_order_id: bool | None = None
    line_notification: bool | None = None
    description: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class CaseTypeRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    category: CaseCategory
    default_severity: Severity
    default_sla_minutes: int
    require_provider: bool
    require_order_id: bool
    line_notification: bool
    description: str | None
    is_active: bool
    created_at: datetime


class CaseTypeSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    category: CaseCategory


class CaseTypeDeleteResponse(BaseModel):
    success: bool = True
    soft_deleted: bool
