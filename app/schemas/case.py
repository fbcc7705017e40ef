"""Pydantic schemas for cases, timeline activities and bulk actions."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import (
    ActivityType,
    CaseSource,
    CaseStatus,
    OrderStatus,
    RootCause,
    Severity,
)
from app.schemas.case_type import CaseTypeSummary
from app.schemas.provider import ProviderSummary
from app.schemas.user import UserSummary


class CaseOrderInput(BaseModel):
    """Order linked at case creation time."""
    order_id: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(Decimal("0"), ge=0)
    status: OrderStatus = OrderStatus.PENDING


class CaseCreate(BaseModel):
    """Request schema for creating a case."""
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    case_type_id: UUID
    severity: Severity | None = None  # Defaults to the case type's severity
    source: CaseSource = CaseSource.MANUAL
    customer_name: str | None = Field(None, max_length=100)
    customer_id: str | None = Field(None, max_length=100)
    customer_contact: str | None = Field(None, max_length=200)
    provider_id: UUID | None = None
    owner_id: UUID | None = None
    orders: list[CaseOrderInput] = Field(default_factory=list)


class CaseUpdate(BaseModel):
    """Partial update. Status changes are checked against the transition table."""
    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=5000)
    status: CaseStatus | None = None
    severity: Severity | None = None
    owner_id: UUID | None = None
    provider_id: UUID | None = None
    root_cause: RootCause | None = None
    resolution: str | None = Field(None, max_length=5000)


class BulkCaseAction(BaseModel):
    # Parsed in the service so malformed ids are a 400 like empty ones
    case_ids: list[str] = Field(default_factory=list)
    action: str
    assignee_id: UUID | None = None


class BulkCaseResult(BaseModel):
    success: bool = True
    updated: int


# =============================================================================
# Activities
# =============================================================================

class ActivityCreate(BaseModel):
    type: ActivityType = ActivityType.NOTE_ADDED
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    attachment_url: str | None = Field(None, max_length=1000)


class ActivityRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    case_id: UUID
    type: ActivityType
    title: str
    description: str | None
    old_value: str | None
    new_value: str | None
    attachment_url: str | None
    user: UserSummary | None = None
    created_at: datetime


# =============================================================================
# Responses
# =============================================================================

class CaseOrderRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    order_id: str
    amount: Decimal
    status: OrderStatus


class CaseAttachmentRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    file_name: str
    file_size: int
    file_type: str
    created_at: datetime


class CaseListItem(BaseModel):
    """Compact case for table views."""
    model_config = {"from_attributes": True}

    id: UUID
    case_number: str
    title: str
    status: CaseStatus
    severity: Severity
    source: CaseSource
    customer_name: str | None
    case_type: CaseTypeSummary | None = None
    owner: UserSummary | None = None
    provider: ProviderSummary | None = None
    sla_deadline: datetime | None
    sla_missed: bool
    created_at: datetime
    updated_at: datetime


class CaseRead(BaseModel):
    """Full case detail with related records."""
    model_config = {"from_attributes": True}

    id: UUID
    case_number: str
    title: str
    description: str | None
    status: CaseStatus
    severity: Severity
    source: CaseSource
    customer_name: str | None
    customer_id: str | None
    customer_contact: str | None
    case_type: CaseTypeSummary | None = None
    owner: UserSummary | None = None
    provider: ProviderSummary | None = None
    sla_deadline: datetime | None
    sla_missed: bool
    first_response_at: datetime | None
    resolved_at: datetime | None
    closed_at: datetime | None
    root_cause: RootCause | None
    resolution: str | None
    orders: list[CaseOrderRead] = Field(default_factory=list)
    activities: list[ActivityRead] = Field(default_factory=list)
    attachments: list[CaseAttachmentRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class CaseListResponse(BaseModel):
    items: list[CaseListItem]
    pagination: Pagination


class CaseCounts(BaseModel):
    """Per-category tab counts."""
    all: int
    PAYMENT: int
    ORDER: int
    SYSTEM: int
    PROVIDER: int
    OTHER: int


ExportFormat = Literal["csv", "json"]
