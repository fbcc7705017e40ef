"""Reports and team performance."""

from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.enums import ROLES_TEAM, CaseStatus, UserRole
from app.db.models import Case, CaseType, Provider, User
from app.db.types import as_utc

CLOSED_STATUSES = [CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value]
TREND_MONTHS = 6

# Users listed in the report's team section
REPORT_TEAM_ROLES = [
    UserRole.TECHNICIAN.value, UserRole.SUPPORT.value,
    UserRole.MANAGER.value, UserRole.CEO.value,
]


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_months(value: datetime, months: int) -> datetime:
    """First day of the month `months` away from value's month."""
    index = value.year * 12 + (value.month - 1) + months
    return month_start(value).replace(year=index // 12, month=index % 12 + 1)


def _minutes(later: datetime, earlier: datetime) -> int:
    return int((as_utc(later) - as_utc(earlier)).total_seconds() // 60)


def _avg_resolution_minutes(rows) -> int:
    times = [_minutes(resolved, created) for created, resolved in rows if resolved]
    times = [t for t in times if t > 0]
    return round(sum(times) / len(times)) if times else 0


def get_reports(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    this_month = month_start(now)
    last_month = shift_months(now, -1)
    not_deleted = Case.is_deleted.is_(False)

    by_status = dict(
        db.query(Case.status, func.count(Case.id)).filter(not_deleted).group_by(Case.status).all()
    )
    by_severity = dict(
        db.query(Case.severity, func.count(Case.id)).filter(not_deleted).group_by(Case.severity).all()
    )

    type_count = func.count(Case.id)
    by_type = (
        db.query(CaseType.name, CaseType.category, type_count)
        .join(Case, Case.case_type_id == CaseType.id)
        .filter(not_deleted)
        .group_by(CaseType.id, CaseType.name, CaseType.category)
        .order_by(type_count.desc())
        .limit(10)
        .all()
    )

    monthly_trend = []
    for offset in range(TREND_MONTHS - 1, -1, -1):
        start = shift_months(now, -offset)
        end = shift_months(now, -offset + 1)
        statuses = [
            s for (s,) in db.query(Case.status)
            .filter(not_deleted, Case.created_at >= start, Case.created_at < end)
            .all()
        ]
        monthly_trend.append({
            "month": start.strftime("%b %Y"),
            "total": len(statuses),
            "resolved": sum(1 for s in statuses if s in CLOSED_STATUSES),
        })

    resolution_rows = (
        db.query(Case.created_at, Case.resolved_at)
        .filter(not_deleted, Case.resolved_at.is_not(None), Case.status.in_(CLOSED_STATUSES))
        .all()
    )

    sla_flags = [
        missed for (missed,) in db.query(Case.sla_missed)
        .filter(not_deleted, Case.sla_deadline.is_not(None), Case.status.in_(CLOSED_STATUSES))
        .all()
    ]
    sla_compliance = (
        round(sum(1 for m in sla_flags if not m) / len(sla_flags) * 100) if sla_flags else 100
    )

    top_providers = db.query(Provider).order_by(Provider.total_cases.desc()).limit(5).all()

    month_count = func.count(Case.id)
    team_rows = (
        db.query(User, month_count)
        .outerjoin(Case, (Case.owner_id == User.id) & not_deleted & (Case.created_at >= this_month))
        .filter(User.role.in_(REPORT_TEAM_ROLES))
        .group_by(User.id)
        .order_by(month_count.desc())
        .all()
    )

    this_month_cases = db.query(Case).filter(not_deleted, Case.created_at >= this_month).count()
    last_month_cases = (
        db.query(Case)
        .filter(not_deleted, Case.created_at >= last_month, Case.created_at < this_month)
        .count()
    )
    growth = (
        round((this_month_cases - last_month_cases) / last_month_cases * 100)
        if last_month_cases else 0
    )

    return {
        "cases_by_status": by_status,
        "cases_by_severity": by_severity,
        "cases_by_category": [
            {"name": name, "category": category, "count": count}
            for name, category, count in by_type
        ],
        "monthly_trend": monthly_trend,
        "avg_resolution_time": _avg_resolution_minutes(resolution_rows),
        "sla_compliance": sla_compliance,
        "top_providers": [
            {
                "id": p.id,
                "name": p.name,
                "total_cases": p.total_cases,
                "resolved_cases": p.resolved_cases,
                "refund_rate": float(p.refund_rate or 0),
            }
            for p in top_providers
        ],
        "team_performance": [
            {"id": u.id, "name": u.name, "role": u.role, "cases_this_month": count}
            for u, count in team_rows
        ],
        "growth": growth,
    }


def get_team(db: Session, now: datetime | None = None) -> list[dict]:
    """Per-user case stats for the team page."""
    now = now or datetime.now(timezone.utc)
    this_month = month_start(now)

    users = (
        db.query(User)
        .filter(User.role.in_([r.value for r in ROLES_TEAM]))
        .order_by(User.name.asc())
        .all()
    )

    team = []
    for user in users:
        owned = db.query(Case).filter(Case.owner_id == user.id, Case.is_deleted.is_(False))
        total = owned.count()
        resolved = owned.filter(Case.status.in_(CLOSED_STATUSES)).count()
        this_month_count = owned.filter(Case.created_at >= this_month).count()
        resolution_rows = (
            db.query(Case.created_at, Case.resolved_at)
            .filter(
                Case.owner_id == user.id,
                Case.is_deleted.is_(False),
                Case.resolved_at.is_not(None),
            )
            .all()
        )
        team.append({
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "is_active": user.is_active,
            "created_at": user.created_at,
            "total_cases": total,
            "resolved_cases": resolved,
            "cases_this_month": this_month_count,
            "avg_resolution_time": _avg_resolution_minutes(resolution_rows),
            "resolution_rate": round(resolved / total * 100) if total else 0,
        })

    team.sort(key=lambda item: item["total_cases"], reverse=True)
    return team
