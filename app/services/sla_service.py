"""SLA monitoring - warnings for cases nearing their deadline and missed-SLA alerts."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.db.enums import ActivityType, CaseStatus, LineEvent
from app.db.models import Case
from app.db.types import as_utc
from app.services import activity_service, notification_service

logger = logging.getLogger(__name__)

URGENT_WINDOW_MINUTES = 30
WARNING_REPEAT_MINUTES = 120
MISSED_REPEAT_MINUTES = 360

SLA_WARNING_TITLE = "SLA warning"
SLA_MISSED_TITLE = "SLA missed"


def _open_cases(db: Session):
    return (
        db.query(Case)
        .options(selectinload(Case.owner), selectinload(Case.provider))
        .filter(
            Case.is_deleted.is_(False),
            Case.status.notin_([CaseStatus.RESOLVED.value, CaseStatus.CLOSED.value]),
            Case.sla_deadline.is_not(None),
        )
    )


def _minutes_between(later: datetime, earlier: datetime) -> int:
    return int((later - earlier).total_seconds() // 60)


def _alert(
    db: Session,
    case: Case,
    title: str,
    description: str,
    value: int,
    line_event: LineEvent,
    payload_extra: dict,
) -> bool:
    """Log the SLA activity and queue the Line message; one commit per case."""
    try:
        activity_service.log_activity(
            db=db,
            case_id=case.id,
            activity_type=ActivityType.SLA_UPDATED,
            title=title,
            description=description,
            new_value=str(value),
        )
        notification_service.enqueue_line(
            db,
            line_event.value,
            notification_service.line_case_payload(case, **payload_extra),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record %s for %s", title, case.case_number)
        return False
    return True


def _check_urgent(db: Session, now: datetime) -> dict:
    cases = (
        _open_cases(db)
        .filter(
            Case.sla_deadline >= now,
            Case.sla_deadline <= now + timedelta(minutes=URGENT_WINDOW_MINUTES),
        )
        .all()
    )
    results = {"total": len(cases), "alerted": 0, "skipped": 0, "errors": []}

    for case in cases:
        if activity_service.has_recent_activity(
            db,
            case.id,
            ActivityType.SLA_UPDATED,
            SLA_WARNING_TITLE,
            since=now - timedelta(minutes=WARNING_REPEAT_MINUTES),
        ):
            results["skipped"] += 1
            continue

        remaining = _minutes_between(as_utc(case.sla_deadline), now)
        case_number = case.case_number
        ok = _alert(
            db,
            case,
            SLA_WARNING_TITLE,
            f"SLA expires in {remaining} minutes",
            remaining,
            LineEvent.SLA_ALERT,
            {"minutes_remaining": remaining},
        )
        if ok:
            results["alerted"] += 1
        else:
            results["errors"].append(case_number)

    return results


def _check_missed(db: Session, now: datetime) -> dict:
    cases = _open_cases(db).filter(Case.sla_deadline < now).all()
    results = {"total": len(cases), "alerted": 0, "skipped": 0}

    for case in cases:
        case.sla_missed = True
        if activity_service.has_recent_activity(
            db,
            case.id,
            ActivityType.SLA_UPDATED,
            SLA_MISSED_TITLE,
            since=now - timedelta(minutes=MISSED_REPEAT_MINUTES),
        ):
            results["skipped"] += 1
            continue

        overdue = _minutes_between(now, as_utc(case.sla_deadline))
        if _alert(
            db,
            case,
            SLA_MISSED_TITLE,
            f"SLA missed by {overdue} minutes",
            overdue,
            LineEvent.SLA_MISSED,
            {"minutes_overdue": overdue},
        ):
            results["alerted"] += 1

    db.commit()
    return results


def check_sla(db: Session, now: datetime | None = None) -> dict:
    """
    One SLA sweep.

    Urgent: open cases due within the next 30 minutes, warned at most every
    2 hours. Missed: open cases past their deadline, flagged sla_missed and
    re-alerted every 6 hours.
    """
    now = now or datetime.now(timezone.utc)
    urgent = _check_urgent(db, now)
    missed = _check_missed(db, now)

    logger.info(
        "SLA check: urgent alerted=%s skipped=%s, missed alerted=%s skipped=%s",
        urgent["alerted"], urgent["skipped"], missed["alerted"], missed["skipped"],
    )
    return {
        "success": True,
        "timestamp": now.isoformat(),
        "urgent": urgent,
        "missed": missed,
    }
