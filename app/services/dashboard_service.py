"""Dashboard service - headline counts and widget lists."""

from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.db.enums import CaseStatus, OrderStatus, Severity
from app.db.models import Case, Order, Provider

CLOSED_STATUSES = [CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value]


def _case_summary(case: Case) -> dict:
    return {
        "id": case.id,
        "case_number": case.case_number,
        "title": case.title,
        "status": case.status,
        "severity": case.severity,
        "case_type_name": case.case_type.name if case.case_type else None,
        "owner_name": case.owner.name if case.owner else None,
        "sla_deadline": case.sla_deadline,
        "created_at": case.created_at,
        "resolved_at": case.resolved_at,
    }


def _group_counts(db: Session, column, *filters) -> dict[str, int]:
    rows = db.query(column, func.count()).filter(*filters).group_by(column).all()
    return {key: count for key, count in rows}


def _live_cases(db: Session):
    return db.query(Case).filter(Case.is_deleted.is_(False))


def get_dashboard(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    not_deleted = Case.is_deleted.is_(False)

    total_cases = _live_cases(db).count()
    new_cases = _live_cases(db).filter(Case.status == CaseStatus.NEW.value).count()
    in_progress = _live_cases(db).filter(Case.status.in_(CaseStatus.in_progress_values())).count()
    resolved_today = _live_cases(db).filter(Case.resolved_at >= today_start).count()
    sla_missed = (
        _live_cases(db)
        .filter(Case.sla_missed.is_(True), Case.status.notin_(CLOSED_STATUSES))
        .count()
    )

    with_relations = (selectinload(Case.case_type), selectinload(Case.owner))
    recent_cases = (
        _live_cases(db).options(*with_relations)
        .order_by(Case.created_at.desc()).limit(5).all()
    )
    critical_cases = (
        _live_cases(db).options(*with_relations)
        .filter(Case.severity == Severity.CRITICAL.value, Case.status.notin_(CLOSED_STATUSES))
        .order_by(Case.created_at.desc()).limit(3).all()
    )

    open_count = func.count(Case.id)
    provider_rows = (
        db.query(Provider, open_count)
        .join(Case, Case.provider_id == Provider.id)
        .filter(not_deleted, Case.status.notin_(CLOSED_STATUSES))
        .group_by(Provider.id)
        .order_by(open_count.desc())
        .limit(5)
        .all()
    )

    orders_by_status = _group_counts(db, Order.status)
    awaiting_q = _live_cases(db).filter(Case.status == CaseStatus.RESOLVED.value)

    return {
        "total_cases": total_cases,
        "new_cases": new_cases,
        "in_progress_cases": in_progress,
        "resolved_today": resolved_today,
        "sla_missed": sla_missed,
        "cases_by_status": _group_counts(db, Case.status, not_deleted),
        "cases_by_severity": _group_counts(db, Case.severity, not_deleted),
        "recent_cases": [_case_summary(c) for c in recent_cases],
        "critical_cases": [_case_summary(c) for c in critical_cases],
        "providers_with_issues": [
            {"id": p.id, "name": p.name, "risk_level": p.risk_level, "open_cases": count}
            for p, count in provider_rows
        ],
        "total_orders": sum(orders_by_status.values()),
        "orders_by_status": orders_by_status,
        "pending_orders": orders_by_status.get(OrderStatus.PENDING.value, 0),
        "processing_orders": orders_by_status.get(OrderStatus.PROCESSING.value, 0),
        "completed_orders": orders_by_status.get(OrderStatus.COMPLETED.value, 0),
        "refunded_orders": orders_by_status.get(OrderStatus.REFUNDED.value, 0),
        "failed_orders": orders_by_status.get(OrderStatus.FAILED.value, 0),
        "cases_awaiting_notification": awaiting_q.count(),
        "awaiting_notification_cases": [
            _case_summary(c)
            for c in awaiting_q.options(*with_relations)
            .order_by(Case.resolved_at.desc()).limit(10).all()
        ],
    }
