"""SQLAlchemy ORM models."""

from app.db.models.attachments import Attachment
from app.db.models.cases import Case, CaseActivity, CaseType, Order, case_orders
from app.db.models.notifications import LineChannel, NotificationOutbox, NotificationTemplate
from app.db.models.providers import Provider
from app.db.models.users import User
from app.db.models.webhooks import Webhook

__all__ = [
    "Attachment",
    "Case",
    "CaseActivity",
    "CaseType",
    "LineChannel",
    "NotificationOutbox",
    "NotificationTemplate",
    "Order",
    "Provider",
    "User",
    "Webhook",
    "case_orders",
]
