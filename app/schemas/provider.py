"""Provider schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import ProviderType, RiskLevel


class ProviderCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    type: ProviderType = ProviderType.API
    default_sla_minutes: int = Field(60, ge=5, le=10080)
    contact_channel: str | None = Field(None, max_length=200)
    notification_preference: str | None = Field(None, max_length=100)
    risk_level: RiskLevel = RiskLevel.LOW
    is_active: bool = True


class ProviderUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    type: ProviderType | None = None
    default_sla_minutes: int | None = Field(None, ge=5, le=10080)
    contact_channel: str | None = Field(None, max_length=200)
    notification_preference: str | None = Field(None, max_length=100)
    risk_level: RiskLevel | None = None
    is_active: bool | None = None


class ProviderRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    type: ProviderType
    default_sla_minutes: int
    contact_channel: str | None
    notification_preference: str | None
    risk_level: RiskLevel
    is_active: bool
    total_cases: int
    resolved_cases: int
    refund_rate: Decimal
    cases_count: int = 0
    created_at: datetime


class ProviderSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
