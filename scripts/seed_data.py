"""
Seed default users, case types, providers, Line templates and a Line channel.

Idempotent: existing rows (matched by email/name/event) are left alone.
Run with: python -m scripts.seed_data

Environment:
    SEED_PASSWORD            password for every seeded user (default: ChangeMe123!)
    SEED_LINE_ACCESS_TOKEN   creates an inactive-by-default Line channel when set
"""

import logging
import os

from app.core.security import hash_password
from app.core.structured_logging import configure_logging
from app.db.enums import CaseCategory, LineEvent, ProviderType, RiskLevel, Severity, UserRole
from app.db.models import CaseType, LineChannel, NotificationTemplate, Provider, User
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)

USERS = [
    ("admin@mims.app", "Admin", UserRole.ADMIN),
    ("ceo@mims.app", "CEO", UserRole.CEO),
    ("manager@mims.app", "Manager", UserRole.MANAGER),
    ("support.a@mims.app", "Support A", UserRole.SUPPORT),
    ("support.b@mims.app", "Support B", UserRole.SUPPORT),
    ("tech@mims.app", "Technician", UserRole.TECHNICIAN),
]

# name, category, severity, sla minutes, require provider, require order, line, description
CASE_TYPES = [
    ("Website issue / feedback", CaseCategory.SYSTEM, Severity.NORMAL, 120, False, False, True,
     "Website problem reports and suggestions"),
    ("Password / account issue", CaseCategory.SYSTEM, Severity.HIGH, 30, False, False, True,
     "Password or user account problems"),
    ("Top-up request", CaseCategory.PAYMENT, Severity.NORMAL, 15, True, False, True,
     "Customer asks for a balance top-up"),
    ("Top-up not received", CaseCategory.PAYMENT, Severity.CRITICAL, 15, True, True, True,
     "Customer paid but the balance did not arrive"),
    ("Cancellation request", CaseCategory.ORDER, Severity.NORMAL, 30, True, True, False,
     "Customer asks to cancel an order"),
    ("Completed but count not updated", CaseCategory.ORDER, Severity.HIGH, 30, True, True, True,
     "Order finished but the delivered count did not change"),
    ("Partial delivery", CaseCategory.ORDER, Severity.HIGH, 30, True, True, True,
     "Delivered amount is less than ordered"),
    ("Speed-up request", CaseCategory.ORDER, Severity.NORMAL, 60, True, True, False,
     "Customer asks for faster delivery"),
    ("Site unreachable", CaseCategory.SYSTEM, Severity.CRITICAL, 15, False, False, True,
     "Customers cannot reach the website"),
    ("Promotion request", CaseCategory.OTHER, Severity.LOW, 60, False, False, False,
     "Questions about or requests for promotions"),
    ("Other", CaseCategory.OTHER, Severity.LOW, 240, False, False, False,
     "Anything that fits no other category"),
]

# name, type, sla minutes, risk level, contact channel
PROVIDERS = [
    ("Provider A", ProviderType.API, 60, RiskLevel.LOW, "https://provider-a.example.com/support"),
    ("Provider B", ProviderType.API, 30, RiskLevel.MEDIUM, "support@provider-b.example.com"),
    ("Provider C", ProviderType.MANUAL, 120, RiskLevel.HIGH, "Line: @provider-c"),
]

TEMPLATES = {
    LineEvent.CASE_CREATED: (
        "New case",
        "New case {{case_number}} [{{severity}}]\n{{title}}\n"
        "Customer: {{customer_name}}\nOwner: {{owner_name}}\nSLA: {{sla_deadline}}",
    ),
    LineEvent.CASE_RESOLVED: (
        "Case resolved",
        "Case {{case_number}} resolved\n{{title}}\nOwner: {{owner_name}}",
    ),
    LineEvent.SLA_ALERT: (
        "SLA warning",
        "SLA warning: {{case_number}} expires in {{minutes_remaining}} minutes\n"
        "{{title}}\nOwner: {{owner_name}}",
    ),
    LineEvent.SLA_MISSED: (
        "SLA missed",
        "SLA missed: {{case_number}} overdue by {{minutes_overdue}} minutes\n"
        "{{title}}\nOwner: {{owner_name}}",
    ),
}


def seed_users(db, password: str) -> int:
    created = 0
    for email, name, role in USERS:
        if db.query(User).filter(User.email == email).first():
            continue
        db.add(User(email=email, name=name, role=role.value, password_hash=hash_password(password)))
        created += 1
    return created


def seed_case_types(db) -> int:
    created = 0
    for name, category, severity, sla, req_provider, req_order, line, description in CASE_TYPES:
        if db.query(CaseType).filter(CaseType.name == name).first():
            continue
        db.add(
            CaseType(
                name=name,
                category=category.value,
                default_severity=severity.value,
                default_sla_minutes=sla,
                require_provider=req_provider,
                require_order_id=req_order,
                line_notification=line,
                description=description,
            )
        )
        created += 1
    return created


def seed_providers(db) -> int:
    created = 0
    for name, provider_type, sla, risk, contact in PROVIDERS:
        if db.query(Provider).filter(Provider.name == name).first():
            continue
        db.add(
            Provider(
                name=name,
                type=provider_type.value,
                default_sla_minutes=sla,
                risk_level=risk.value,
                contact_channel=contact,
            )
        )
        created += 1
    return created


def seed_templates(db) -> int:
    created = 0
    for event, (name, text) in TEMPLATES.items():
        if db.query(NotificationTemplate).filter(NotificationTemplate.event == event.value).first():
            continue
        db.add(NotificationTemplate(name=name, event=event.value, template=text))
        created += 1
    return created


def seed_line_channel(db, access_token: str) -> int:
    if db.query(LineChannel).filter(LineChannel.name == "Support team").first():
        return 0
    db.add(
        LineChannel(
            name="Support team",
            access_token=access_token,
            enabled_events=[e.value for e in TEMPLATES],
            is_active=False,
        )
    )
    return 1


def main() -> None:
    configure_logging()
    password = os.getenv("SEED_PASSWORD", "ChangeMe123!")
    line_token = os.getenv("SEED_LINE_ACCESS_TOKEN", "")

    with SessionLocal() as db:
        counts = {
            "users": seed_users(db, password),
            "case_types": seed_case_types(db),
            "providers": seed_providers(db),
            "templates": seed_templates(db),
            "line_channels": seed_line_channel(db, line_token) if line_token else 0,
        }
        db.commit()

    logger.info("Seed complete: %s", counts)


if __name__ == "__main__":
    main()
