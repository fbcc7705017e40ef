"""Activity logging service - centralized case timeline tracking."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import ActivityType
from app.db.models import CaseActivity


def log_activity(
    db: Session,
    case_id: UUID,
    activity_type: ActivityType,
    title: str,
    user_id: UUID | None = None,
    description: str | None = None,
    old_value: str | None = None,
    new_value: str | None = None,
    attachment_url: str | None = None,
) -> CaseActivity:
    """
    Log a case activity.

    Args:
        db: Database session
        case_id: The case this activity is for
        activity_type: Type of activity (from ActivityType enum)
        title: Short timeline heading
        user_id: User who performed the action (None for system)
        old_value / new_value: Before/after values for change entries

    Returns:
        The created activity entry
    """
    activity = CaseActivity(
        case_id=case_id,
        user_id=user_id,
        type=activity_type.value,
        title=title,
        description=description,
        old_value=old_value,
        new_value=new_value,
        attachment_url=attachment_url,
    )
    db.add(activity)
    db.flush()  # Don't commit - let caller control transaction
    return activity


def list_activities(db: Session, case_id: UUID) -> list[CaseActivity]:
    """Timeline for a case, newest first."""
    return (
        db.query(CaseActivity)
        .filter(CaseActivity.case_id == case_id)
        .order_by(CaseActivity.created_at.desc())
        .all()
    )


def has_recent_activity(
    db: Session,
    case_id: UUID,
    activity_type: ActivityType,
    title: str,
    since,
) -> bool:
    """Whether an activity with this type/title was logged at or after `since`."""
    return (
        db.query(CaseActivity.id)
        .filter(
            CaseActivity.case_id == case_id,
            CaseActivity.type == activity_type.value,
            CaseActivity.title == title,
            CaseActivity.created_at >= since,
        )
        .first()
        is not None
    )
