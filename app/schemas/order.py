"""Order schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from app.db.enums import CaseStatus, OrderStatus
from app.schemas.provider import ProviderSummary


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderCaseSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    case_number: str
    title: str
    status: CaseStatus


class OrderRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    order_id: str
    amount: Decimal
    status: OrderStatus
    provider: ProviderSummary | None = None
    cases: list[OrderCaseSummary] = []
    created_at: datetime
    updated_at: datetime
