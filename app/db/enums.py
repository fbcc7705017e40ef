"""Enum definitions for application constants."""

from enum import Enum


class UserRole(str, Enum):
    """
    Back-office user roles.

    - ADMIN: system settings, users, webhooks, channels
    - CEO: everything ADMIN can do, plus role changes
    - MANAGER: reports, team, providers, case deletion
    - SUPPORT / TECHNICIAN: case handling (auto-assignment pool)
    """
    ADMIN = "ADMIN"
    SUPPORT = "SUPPORT"
    MANAGER = "MANAGER"
    CEO = "CEO"
    TECHNICIAN = "TECHNICIAN"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class CaseStatus(str, Enum):
    """
    Case lifecycle.

    NEW → FIXING → RESOLVED → CLOSED, with WAITING_* as side steps.
    INVESTIGATING is kept for older cases; new work goes straight to FIXING.
    """
    NEW = "NEW"
    INVESTIGATING = "INVESTIGATING"
    WAITING_CUSTOMER = "WAITING_CUSTOMER"
    WAITING_PROVIDER = "WAITING_PROVIDER"
    FIXING = "FIXING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @classmethod
    def open_values(cls) -> list[str]:
        """Statuses that still count against SLA."""
        return [s.value for s in cls if s not in (cls.RESOLVED, cls.CLOSED)]

    @classmethod
    def in_progress_values(cls) -> list[str]:
        return [
            cls.INVESTIGATING.value, cls.WAITING_CUSTOMER.value,
            cls.WAITING_PROVIDER.value, cls.FIXING.value,
        ]


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    LOW = "LOW"

    @property
    def priority(self) -> int:
        """1 = most urgent."""
        return SEVERITY_PRIORITY[self.value]


SEVERITY_PRIORITY = {"CRITICAL": 1, "HIGH": 2, "NORMAL": 3, "LOW": 4}


class CaseCategory(str, Enum):
    PAYMENT = "PAYMENT"
    ORDER = "ORDER"
    SYSTEM = "SYSTEM"
    PROVIDER = "PROVIDER"
    OTHER = "OTHER"


class CaseSource(str, Enum):
    """How the case was created."""
    LINE = "LINE"
    TICKET = "TICKET"
    API = "API"
    MANUAL = "MANUAL"


class ActivityType(str, Enum):
    """Types of entries in a case timeline."""
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    ASSIGNED = "ASSIGNED"
    NOTE_ADDED = "NOTE_ADDED"
    FILE_ATTACHED = "FILE_ATTACHED"
    SLA_UPDATED = "SLA_UPDATED"
    SEVERITY_CHANGED = "SEVERITY_CHANGED"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"

    @classmethod
    def terminal_values(cls) -> set[str]:
        return {cls.COMPLETED.value, cls.REFUNDED.value, cls.CANCELLED.value, cls.FAILED.value}


class ProviderType(str, Enum):
    API = "API"
    MANUAL = "MANUAL"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RootCause(str, Enum):
    PROVIDER_ISSUE = "PROVIDER_ISSUE"
    PAYMENT_GATEWAY = "PAYMENT_GATEWAY"
    SYSTEM_BUG = "SYSTEM_BUG"
    USER_ERROR = "USER_ERROR"
    PROCESS_ERROR = "PROCESS_ERROR"
    NETWORK_ISSUE = "NETWORK_ISSUE"
    OTHER = "OTHER"


class WebhookEvent(str, Enum):
    """Outbound webhook event names."""
    CASE_CREATED = "case.created"
    CASE_UPDATED = "case.updated"
    CASE_STATUS_CHANGED = "case.status_changed"
    CASE_ASSIGNED = "case.assigned"
    CASE_RESOLVED = "case.resolved"
    CASE_CLOSED = "case.closed"
    CASE_NOTE_ADDED = "case.note_added"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class LineEvent(str, Enum):
    """Line notification events (matched against channel enabled_events)."""
    CASE_CREATED = "case_created"
    CASE_RESOLVED = "case_resolved"
    SLA_ALERT = "sla_alert"
    SLA_MISSED = "sla_missed"
    SLA_WARNING = "sla_warning"


class OutboxChannel(str, Enum):
    LINE = "LINE"
    WEBHOOK = "WEBHOOK"


class OutboxStatus(str, Enum):
    """Delivery state of an outbox row."""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


# =============================================================================
# Workflow rules
# =============================================================================

STATUS_TRANSITIONS: dict[str, list[str]] = {
    CaseStatus.NEW.value: [CaseStatus.FIXING.value, CaseStatus.CLOSED.value],
    CaseStatus.INVESTIGATING.value: [
        CaseStatus.FIXING.value, CaseStatus.RESOLVED.value,
        CaseStatus.WAITING_CUSTOMER.value, CaseStatus.WAITING_PROVIDER.value,
        CaseStatus.CLOSED.value,
    ],
    CaseStatus.WAITING_CUSTOMER.value: [
        CaseStatus.FIXING.value, CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value,
    ],
    CaseStatus.WAITING_PROVIDER.value: [
        CaseStatus.FIXING.value, CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value,
    ],
    CaseStatus.FIXING.value: [
        CaseStatus.RESOLVED.value, CaseStatus.WAITING_CUSTOMER.value,
        CaseStatus.WAITING_PROVIDER.value, CaseStatus.NEW.value, CaseStatus.CLOSED.value,
    ],
    CaseStatus.RESOLVED.value: [CaseStatus.CLOSED.value, CaseStatus.FIXING.value],
    CaseStatus.CLOSED.value: [CaseStatus.FIXING.value],
}


def can_transition(from_status: str, to_status: str) -> bool:
    """Check whether a case may move from one status to another."""
    return to_status in STATUS_TRANSITIONS.get(from_status, [])


# =============================================================================
# Defaults and role groups
# =============================================================================

DEFAULT_CASE_STATUS = CaseStatus.NEW
DEFAULT_CASE_SOURCE = CaseSource.MANUAL
DEFAULT_SEVERITY = Severity.NORMAL
DEFAULT_ORDER_STATUS = OrderStatus.PENDING
DEFAULT_OUTBOX_STATUS = OutboxStatus.PENDING

# requireAdmin: system configuration, user management
ROLES_ADMIN = {UserRole.ADMIN, UserRole.CEO}

# requireManager: reports, team, providers, case deletion
ROLES_MANAGER = {UserRole.ADMIN, UserRole.CEO, UserRole.MANAGER}

# Auto-assignment pool for new cases
ROLES_ASSIGNABLE = {UserRole.TECHNICIAN, UserRole.SUPPORT}

# Users listed on the team performance page
ROLES_TEAM = {UserRole.ADMIN, UserRole.SUPPORT, UserRole.MANAGER, UserRole.TECHNICIAN}
