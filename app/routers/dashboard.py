"""Dashboard router - summary counts and widget lists for the home page."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db
from app.schemas.auth import UserSession
from app.services import dashboard_service

router = APIRouter()


@router.get("")
def get_dashboard(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """
    Case and order totals, status/severity breakdowns, recent and critical
    cases, providers with open issues, and resolved cases awaiting a
    customer notification.
    """
    return dashboard_service.get_dashboard(db)
