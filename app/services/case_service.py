"""Case service - business logic for case operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import case as sql_case
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.structured_logging import build_log_context
from app.db.enums import (
    ROLES_ASSIGNABLE,
    SEVERITY_PRIORITY,
    ActivityType,
    CaseCategory,
    CaseStatus,
    LineEvent,
    OrderStatus,
    WebhookEvent,
    can_transition,
)
from app.db.models import Case, CaseType, Order, Provider, User
from app.schemas.case import ActivityCreate, CaseCreate, CaseUpdate
from app.services import activity_service, notification_service, provider_service
from app.utils.pagination import paginate_query

logger = logging.getLogger(__name__)

BULK_ACTIONS = {"assign", "resolve", "close"}
SORT_OPTIONS = {"createdAt-desc", "createdAt-asc", "severity", "slaDeadline"}


@dataclass
class CaseFilters:
    status: list[str] | None = None
    severity: str | None = None
    category: str | None = None
    case_type_id: UUID | None = None
    owner_id: UUID | None = None
    search: str | None = None


# =============================================================================
# Case numbers
# =============================================================================

def generate_case_number(db: Session, now: datetime | None = None) -> str:
    """
    Next number for the current year: CASE-{year}-{n:04d}.

    n is one more than the number of cases created this year; if that number
    is already taken (deleted rows, concurrent inserts) we move forward.
    """
    now = now or datetime.now(timezone.utc)
    year_start = datetime(now.year, 1, 1, tzinfo=timezone.utc)
    count = db.query(func.count(Case.id)).filter(Case.created_at >= year_start).scalar() or 0

    n = count + 1
    while True:
        candidate = f"CASE-{now.year}-{n:04d}"
        exists = db.query(Case.id).filter(Case.case_number == candidate).first()
        if not exists:
            return candidate
        n += 1


def _is_case_number_conflict(error: IntegrityError) -> bool:
    message = str(error.orig) if error.orig else str(error)
    return "case_number" in message


# =============================================================================
# Assignment
# =============================================================================

def pick_auto_assignee(db: Session) -> User | None:
    """Active TECHNICIAN/SUPPORT user with the fewest open cases."""
    open_count = func.count(Case.id)
    row = (
        db.query(User, open_count)
        .outerjoin(
            Case,
            and_(
                Case.owner_id == User.id,
                Case.status.in_(CaseStatus.open_values()),
                Case.is_deleted.is_(False),
            ),
        )
        .filter(
            User.is_active.is_(True),
            User.role.in_([r.value for r in ROLES_ASSIGNABLE]),
        )
        .group_by(User.id)
        .order_by(open_count.asc(), User.created_at.asc())
        .first()
    )
    return row[0] if row else None


def _get_active_user(db: Session, user_id: UUID) -> User | None:
    return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()


# =============================================================================
# Queries
# =============================================================================

def get_case(db: Session, case_id: UUID) -> Case | None:
    """Non-deleted case by id, with detail relationships loaded."""
    return (
        db.query(Case)
        .options(
            selectinload(Case.case_type),
            selectinload(Case.owner),
            selectinload(Case.provider),
            selectinload(Case.orders),
            selectinload(Case.attachments),
        )
        .filter(Case.id == case_id, Case.is_deleted.is_(False))
        .first()
    )


def parse_status_filter(raw: str | None) -> list[str] | None:
    """Accept a single status or a comma list. 'all' means no filter."""
    if not raw or raw.lower() == "all":
        return None
    statuses = [s.strip().upper() for s in raw.split(",") if s.strip()]
    return statuses or None


def _severity_rank():
    return sql_case(SEVERITY_PRIORITY, value=Case.severity, else_=99)


def _apply_filters(query, filters: CaseFilters):
    query = query.filter(Case.is_deleted.is_(False))
    if filters.status:
        query = query.filter(Case.status.in_(filters.status))
    if filters.severity and filters.severity.lower() != "all":
        query = query.filter(Case.severity == filters.severity.upper())
    if filters.category and filters.category.lower() != "all":
        query = query.join(CaseType, Case.case_type_id == CaseType.id).filter(
            CaseType.category == filters.category.upper()
        )
    if filters.case_type_id:
        query = query.filter(Case.case_type_id == filters.case_type_id)
    if filters.owner_id:
        query = query.filter(Case.owner_id == filters.owner_id)
    if filters.search:
        term = f"%{filters.search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Case.case_number).like(term),
                func.lower(Case.title).like(term),
                func.lower(Case.customer_name).like(term),
            )
        )
    return query


def list_cases(
    db: Session,
    filters: CaseFilters,
    sort: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Case], int]:
    """
    Filtered, sorted, paginated case list.

    Returns:
        (cases, total_count)
    """
    query = _apply_filters(db.query(Case), filters)
    total = query.count()

    if sort == "createdAt-asc":
        query = query.order_by(Case.created_at.asc())
    elif sort == "createdAt-desc":
        query = query.order_by(Case.created_at.desc())
    elif sort == "severity":
        query = query.order_by(_severity_rank().asc(), Case.created_at.desc())
    elif sort == "slaDeadline":
        query = query.order_by(Case.sla_deadline.is_(None), Case.sla_deadline.asc())
    else:
        query = query.order_by(_severity_rank().asc(), Case.created_at.desc())

    query = query.options(
        selectinload(Case.case_type),
        selectinload(Case.owner),
        selectinload(Case.provider),
    )
    cases = paginate_query(query, page, limit)
    return cases, total


def get_counts(db: Session) -> dict[str, int]:
    """Non-deleted case counts: all, plus one per case-type category."""
    counts = {"all": 0, **{c.value: 0 for c in CaseCategory}}
    rows = (
        db.query(CaseType.category, func.count(Case.id))
        .join(Case, Case.case_type_id == CaseType.id)
        .filter(Case.is_deleted.is_(False))
        .group_by(CaseType.category)
        .all()
    )
    for category, count in rows:
        if category in counts:
            counts[category] = count
        counts["all"] += count
    return counts


def list_cases_for_export(
    db: Session,
    filters: CaseFilters,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[Case]:
    query = _apply_filters(db.query(Case), filters)
    if start_date:
        query = query.filter(Case.created_at >= start_date)
    if end_date:
        query = query.filter(Case.created_at <= end_date)
    return (
        query.options(
            selectinload(Case.case_type),
            selectinload(Case.owner),
            selectinload(Case.provider),
            selectinload(Case.orders),
        )
        .order_by(Case.created_at.desc())
        .all()
    )


# =============================================================================
# Create
# =============================================================================

def create_case(db: Session, data: CaseCreate, user_id: UUID | None) -> Case:
    """
    Create a case with defaults from its case type.

    Raises:
        ValueError: Unknown case type/provider/owner, or a required field
            for the case type is missing
    """
    case_type = db.query(CaseType).filter(CaseType.id == data.case_type_id).first()
    if not case_type:
        raise ValueError("Case type not found")

    if case_type.require_provider and not data.provider_id:
        raise ValueError("Provider is required for this case type")
    if case_type.require_order_id and not data.orders:
        raise ValueError("Order ID is required for this case type")

    provider = None
    if data.provider_id:
        provider = db.query(Provider).filter(Provider.id == data.provider_id).first()
        if not provider:
            raise ValueError("Provider not found")

    owner = None
    auto_assigned = False
    if data.owner_id:
        owner = _get_active_user(db, data.owner_id)
        if not owner:
            raise ValueError("Owner not found")
    else:
        owner = pick_auto_assignee(db)
        auto_assigned = owner is not None

    now = datetime.now(timezone.utc)
    severity = data.severity.value if data.severity else case_type.default_severity

    case = None
    for attempt in range(3):
        case = Case(
            case_number=generate_case_number(db, now),
            title=data.title.strip(),
            description=data.description,
            case_type_id=case_type.id,
            severity=severity,
            source=data.source.value,
            customer_name=data.customer_name,
            customer_id=data.customer_id,
            customer_contact=data.customer_contact,
            provider_id=provider.id if provider else None,
            owner_id=owner.id if owner else None,
            sla_deadline=now + timedelta(minutes=case_type.default_sla_minutes),
        )
        db.add(case)
        try:
            db.flush()
            break
        except IntegrityError as exc:
            db.rollback()
            if _is_case_number_conflict(exc) and attempt < 2:
                continue
            raise

    for order_input in data.orders:
        order = Order(
            order_id=order_input.order_id.strip(),
            amount=order_input.amount,
            status=order_input.status.value,
            provider_id=provider.id if provider else None,
        )
        db.add(order)
        case.orders.append(order)

    if provider:
        provider_service.record_case_opened(provider)

    activity_service.log_activity(
        db=db,
        case_id=case.id,
        activity_type=ActivityType.CREATED,
        title="Case created",
        description=f"Case {case.case_number} created from {case.source}",
        user_id=user_id,
    )
    if auto_assigned:
        activity_service.log_activity(
            db=db,
            case_id=case.id,
            activity_type=ActivityType.ASSIGNED,
            title="Auto-assigned",
            description=f"Assigned to {owner.name}",
            new_value=str(owner.id),
        )

    db.flush()
    db.refresh(case)
    if case_type.line_notification or auto_assigned:
        notification_service.enqueue_line(
            db, LineEvent.CASE_CREATED.value, notification_service.line_case_payload(case)
        )
    notification_service.enqueue_webhooks(
        db, WebhookEvent.CASE_CREATED.value, notification_service.case_event_data(case)
    )

    db.commit()
    db.refresh(case)
    logger.info(
        "Case created",
        extra=build_log_context(
            user_id=user_id, case_id=case.id, case_number=case.case_number, event="case_created"
        ),
    )
    return case


# =============================================================================
# Update
# =============================================================================

def _close_pending_orders(case: Case, order_status: OrderStatus) -> None:
    for order in case.orders:
        if order.status == OrderStatus.PENDING.value:
            order.status = order_status.value


def _apply_status(
    db: Session,
    case: Case,
    new_status: str,
    user_id: UUID | None,
    now: datetime,
    bulk: bool = False,
) -> list[str]:
    """
    Set a new status with its side effects (timestamps, orders, provider
    stats, activity). Returns the webhook events it triggers.
    """
    old_status = case.status
    case.status = new_status
    events = [WebhookEvent.CASE_STATUS_CHANGED.value]

    if case.first_response_at is None:
        case.first_response_at = now

    if new_status == CaseStatus.RESOLVED.value:
        if case.resolved_at is None and case.provider:
            provider_service.record_case_resolved(case.provider)
        case.resolved_at = now
        _close_pending_orders(case, OrderStatus.COMPLETED)
        events.append(WebhookEvent.CASE_RESOLVED.value)
    elif new_status == CaseStatus.CLOSED.value:
        case.closed_at = now
        _close_pending_orders(case, OrderStatus.CANCELLED)
        events.append(WebhookEvent.CASE_CLOSED.value)

    reopened = (
        old_status in (CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value)
        and new_status == CaseStatus.FIXING.value
    )
    if reopened:
        activity_type, title = ActivityType.REOPENED, "Case reopened"
    elif bulk and new_status == CaseStatus.RESOLVED.value:
        activity_type, title = ActivityType.RESOLVED, "Case resolved (bulk)"
    elif bulk and new_status == CaseStatus.CLOSED.value:
        activity_type, title = ActivityType.CLOSED, "Case closed (bulk)"
    else:
        activity_type, title = ActivityType.STATUS_CHANGED, "Status changed"

    activity_service.log_activity(
        db=db,
        case_id=case.id,
        activity_type=activity_type,
        title=title,
        description=f"{old_status} -> {new_status}",
        user_id=user_id,
        old_value=old_status,
        new_value=new_status,
    )
    return events


def _apply_owner(db: Session, case: Case, owner: User | None, user_id: UUID | None, bulk: bool = False) -> None:
    old_owner = case.owner
    case.owner_id = owner.id if owner else None
    case.owner = owner
    activity_service.log_activity(
        db=db,
        case_id=case.id,
        activity_type=ActivityType.ASSIGNED,
        title="Case assigned (bulk)" if bulk else ("Case assigned" if owner else "Case unassigned"),
        description=f"Assigned to {owner.name}" if owner else "Owner removed",
        user_id=user_id,
        old_value=old_owner.name if old_owner else None,
        new_value=owner.name if owner else None,
    )


def update_case(db: Session, case: Case, data: CaseUpdate, user_id: UUID | None) -> Case:
    """
    Apply a partial update.

    Raises:
        ValueError: Invalid status transition or unknown owner/provider
    """
    updates = data.model_dump(exclude_unset=True)
    now = datetime.now(timezone.utc)
    events = [WebhookEvent.CASE_UPDATED.value]
    line_events: list[str] = []

    new_status = updates.get("status")
    if new_status is not None and new_status.value != case.status:
        if not can_transition(case.status, new_status.value):
            raise ValueError(f"Cannot change status from {case.status} to {new_status.value}")

    if "owner_id" in updates and updates["owner_id"] != case.owner_id:
        owner = None
        if updates["owner_id"] is not None:
            owner = _get_active_user(db, updates["owner_id"])
            if not owner:
                raise ValueError("Owner not found")
        _apply_owner(db, case, owner, user_id)
        if owner:
            events.append(WebhookEvent.CASE_ASSIGNED.value)

    if "provider_id" in updates and updates["provider_id"] != case.provider_id:
        provider = None
        if updates["provider_id"] is not None:
            provider = db.query(Provider).filter(Provider.id == updates["provider_id"]).first()
            if not provider:
                raise ValueError("Provider not found")
        # _apply_status reads case.provider, not provider_id
        case.provider = provider

    if updates.get("severity") is not None and updates["severity"].value != case.severity:
        old_severity = case.severity
        case.severity = updates["severity"].value
        activity_service.log_activity(
            db=db,
            case_id=case.id,
            activity_type=ActivityType.SEVERITY_CHANGED,
            title="Severity changed",
            description=f"{old_severity} -> {case.severity}",
            user_id=user_id,
            old_value=old_severity,
            new_value=case.severity,
        )

    for field in ("title", "description", "resolution"):
        if field in updates and (updates[field] is not None or field != "title"):
            setattr(case, field, updates[field])
    if "root_cause" in updates:
        case.root_cause = updates["root_cause"].value if updates["root_cause"] else None

    if new_status is not None and new_status.value != case.status:
        events.extend(_apply_status(db, case, new_status.value, user_id, now))
        if new_status == CaseStatus.RESOLVED:
            line_events.append(LineEvent.CASE_RESOLVED.value)

    db.flush()
    db.refresh(case)
    data_block = notification_service.case_event_data(case)
    for event in events:
        notification_service.enqueue_webhooks(db, event, data_block)
    for event in line_events:
        notification_service.enqueue_line(db, event, notification_service.line_case_payload(case))

    db.commit()
    db.refresh(case)
    return case


def delete_case(db: Session, case: Case, user_id: UUID | None) -> None:
    """Soft delete."""
    case.is_deleted = True
    case.deleted_at = datetime.now(timezone.utc)
    activity_service.log_activity(
        db=db,
        case_id=case.id,
        activity_type=ActivityType.NOTE_ADDED,
        title="Case deleted",
        user_id=user_id,
    )
    db.commit()


def _parse_case_ids(raw_ids: list[str]) -> list[UUID]:
    try:
        return [UUID(str(raw)) for raw in raw_ids]
    except ValueError:
        raise ValueError("Invalid case_ids")


def bulk_update(
    db: Session,
    case_ids: list[str],
    action: str,
    assignee_id: UUID | None,
    user_id: UUID | None,
) -> int:
    """
    Assign, resolve, or close several cases at once.

    Bulk resolve/close force the target status without checking the
    transition table; cases already in that status are left untouched.

    Raises:
        ValueError: Empty or malformed ids, unknown action, or missing/unknown assignee
    """
    if not case_ids:
        raise ValueError("Invalid case_ids")
    ids = _parse_case_ids(case_ids)
    if action not in BULK_ACTIONS:
        raise ValueError("Invalid action")

    assignee = None
    if action == "assign":
        if not assignee_id:
            raise ValueError("Missing assignee_id")
        assignee = _get_active_user(db, assignee_id)
        if not assignee:
            raise ValueError("Assignee not found")

    cases = (
        db.query(Case)
        .filter(Case.id.in_(ids), Case.is_deleted.is_(False))
        .all()
    )
    if not cases:
        raise ValueError("Invalid case_ids")

    now = datetime.now(timezone.utc)
    touched: list[tuple[Case, list[str]]] = []
    for case in cases:
        if action == "assign":
            if case.owner_id == assignee.id:
                continue
            _apply_owner(db, case, assignee, user_id, bulk=True)
            touched.append((case, [WebhookEvent.CASE_UPDATED.value, WebhookEvent.CASE_ASSIGNED.value]))
        else:
            target = CaseStatus.RESOLVED.value if action == "resolve" else CaseStatus.CLOSED.value
            if case.status == target:
                continue
            events = _apply_status(db, case, target, user_id, now, bulk=True)
            touched.append((case, [WebhookEvent.CASE_UPDATED.value, *events]))

    db.flush()
    for case, events in touched:
        data_block = notification_service.case_event_data(case)
        for event in events:
            notification_service.enqueue_webhooks(db, event, data_block)
        if action == "resolve":
            notification_service.enqueue_line(
                db, LineEvent.CASE_RESOLVED.value, notification_service.line_case_payload(case)
            )

    db.commit()
    logger.info("Bulk %s applied to %d cases", action, len(touched))
    return len(cases)


def add_note(db: Session, case: Case, data: ActivityCreate, user_id: UUID | None):
    activity = activity_service.log_activity(
        db=db,
        case_id=case.id,
        activity_type=data.type,
        title=data.title.strip(),
        description=data.description,
        user_id=user_id,
        attachment_url=data.attachment_url,
    )
    notification_service.enqueue_webhooks(
        db,
        WebhookEvent.CASE_NOTE_ADDED.value,
        notification_service.case_event_data(case, note_title=activity.title),
    )
    db.commit()
    db.refresh(activity)
    return activity
