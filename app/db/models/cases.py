"""Case tracking models: case types, cases, timeline activities, orders."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import (
    DEFAULT_CASE_SOURCE,
    DEFAULT_CASE_STATUS,
    DEFAULT_ORDER_STATUS,
    DEFAULT_SEVERITY,
)
from app.db.types import utcnow

if TYPE_CHECKING:
    from app.db.models import Attachment, Provider, User


case_orders = Table(
    "case_orders",
    Base.metadata,
    Column("case_id", Uuid, ForeignKey("cases.id", ondelete="CASCADE"), primary_key=True),
    Column("order_id", Uuid, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True),
)


class CaseType(Base):
    """
    Configurable case template.

    Supplies default severity and SLA for new cases, and flags which
    fields are mandatory when a case of this type is opened.
    """

    __tablename__ = "case_types"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    default_severity: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_SEVERITY.value, nullable=False
    )
    default_sla_minutes: Mapped[int] = mapped_column(Integer, default=120, nullable=False)
    require_provider: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    require_order_id: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    line_notification: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    cases: Mapped[list["Case"]] = relationship(back_populates="case_type")


class Case(Base):
    """A trackable support issue with status, severity, and SLA fields."""

    __tablename__ = "cases"
    __table_args__ = (
        Index("ix_cases_status_deleted", "status", "is_deleted"),
        Index("ix_cases_sla_deadline", "sla_deadline"),
        Index("ix_cases_owner_id", "owner_id"),
        Index("ix_cases_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    case_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("case_types.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(30), default=DEFAULT_CASE_STATUS.value, nullable=False
    )
    severity: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_SEVERITY.value, nullable=False
    )
    source: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_CASE_SOURCE.value, nullable=False
    )

    # Customer (free text, no customer table)
    customer_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_contact: Mapped[str | None] = mapped_column(String(200), nullable=True)

    provider_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="SET NULL"), nullable=True
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # SLA + lifecycle timestamps
    sla_deadline: Mapped[datetime | None] = mapped_column(nullable=True)
    sla_missed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    first_response_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    root_cause: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    case_type: Mapped["CaseType"] = relationship(back_populates="cases")
    owner: Mapped["User | None"] = relationship(back_populates="owned_cases")
    provider: Mapped["Provider | None"] = relationship(back_populates="cases")
    orders: Mapped[list["Order"]] = relationship(
        secondary=case_orders, back_populates="cases"
    )
    activities: Mapped[list["CaseActivity"]] = relationship(
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="CaseActivity.created_at.desc()",
    )
    attachments: Mapped[list["Attachment"]] = relationship(
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="Attachment.created_at.desc()",
    )


class CaseActivity(Base):
    """
    Timeline entry for a case.

    user_id is NULL for system entries (SLA checks, order automation).
    """

    __tablename__ = "case_activities"
    __table_args__ = (
        Index("ix_case_activities_case_created", "case_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    old_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    new_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attachment_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    case: Mapped["Case"] = relationship(back_populates="activities")
    user: Mapped["User | None"] = relationship()


class Order(Base):
    """Customer order linked to one or more cases."""

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_ORDER_STATUS.value, nullable=False
    )
    provider_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    provider: Mapped["Provider | None"] = relationship(back_populates="orders")
    cases: Mapped[list["Case"]] = relationship(
        secondary=case_orders, back_populates="orders"
    )
