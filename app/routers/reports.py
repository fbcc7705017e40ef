"""Reports router - management analytics."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_manager
from app.schemas.auth import UserSession
from app.services import report_service

router = APIRouter()


@router.get("")
def get_reports(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    """Breakdowns, six-month trend, SLA compliance, top providers and growth."""
    return report_service.get_reports(db)
