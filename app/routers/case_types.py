"""Case type endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, require_admin, require_csrf_header
from app.schemas.auth import UserSession
from app.schemas.case_type import (
    CaseTypeCreate,
    CaseTypeDeleteResponse,
    CaseTypeRead,
    CaseTypeUpdate,
)
from app.services import case_type_service

router = APIRouter()


def _get_or_404(db: Session, case_type_id: UUID):
    case_type = case_type_service.get_case_type(db, case_type_id)
    if not case_type:
        raise HTTPException(status_code=404, detail="Case type not found")
    return case_type


@router.get("", response_model=list[CaseTypeRead])
def list_case_types(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return case_type_service.list_case_types(db, include_inactive=include_inactive)


@router.post(
    "",
    response_model=CaseTypeRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_case_type(
    data: CaseTypeCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        return case_type_service.create_case_type(db, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{case_type_id}", response_model=CaseTypeRead)
def get_case_type(
    case_type_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return _get_or_404(db, case_type_id)


@router.patch(
    "/{case_type_id}",
    response_model=CaseTypeRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_case_type(
    case_type_id: UUID,
    data: CaseTypeUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    case_type = _get_or_404(db, case_type_id)
    try:
        return case_type_service.update_case_type(db, case_type, data)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete(
    "/{case_type_id}",
    response_model=CaseTypeDeleteResponse,
    dependencies=[Depends(require_csrf_header)],
)
def delete_case_type(
    case_type_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """Deactivates types still used by cases; removes unused ones."""
    case_type = _get_or_404(db, case_type_id)
    soft_deleted = case_type_service.delete_case_type(db, case_type)
    return CaseTypeDeleteResponse(success=True, soft_deleted=soft_deleted)
