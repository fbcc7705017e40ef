"""Payment/service providers that cases and orders are raised against."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import ProviderType, RiskLevel
from app.db.types import utcnow

if TYPE_CHECKING:
    from app.db.models import Case, Order


class Provider(Base):
    __tablename__ = "providers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=ProviderType.API.value, nullable=False)
    default_sla_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    contact_channel: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notification_preference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    risk_level: Mapped[str] = mapped_column(String(20), default=RiskLevel.LOW.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Running counters, maintained by case_service
    total_cases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    resolved_cases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    refund_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    cases: Mapped[list["Case"]] = relationship(back_populates="provider")
    orders: Mapped[list["Order"]] = relationship(back_populates="provider")
