"""Team router - per-user workload stats."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_manager
from app.schemas.auth import UserSession
from app.services import report_service

router = APIRouter()


class TeamMember(BaseModel):
    id: UUID
    name: str
    email: str
    role: str
    is_active: bool
    created_at: datetime
    total_cases: int
    resolved_cases: int
    cases_this_month: int
    avg_resolution_time: int  # minutes
    resolution_rate: int  # percent


@router.get("", response_model=list[TeamMember])
def get_team(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    """Support staff ordered by total assigned cases."""
    return report_service.get_team(db)
