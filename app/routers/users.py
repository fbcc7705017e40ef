"""User management endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from app.core.deps import get_current_session, get_db, is_admin, require_admin, require_csrf_header
from app.db.enums import UserRole
from app.schemas.auth import UserSession
from app.schemas.user import UserCreate, UserRead, UserUpdate
from app.services import user_service

router = APIRouter()


def _get_user_or_404(db: Session, user_id: UUID):
    user = user_service.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=list[UserRead])
def list_users(
    active: bool | None = Query(None),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """List users ordered by name. Admin only."""
    return user_service.list_users(db, active=active)


@router.post(
    "",
    response_model=UserRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    try:
        return user_service.create_user(db, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Admins can read anyone; everyone else only themselves."""
    if not is_admin(session) and session.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to view this user")
    return _get_user_or_404(db, user_id)


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_user(
    user_id: UUID,
    data: UserUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """
    Update a user.

    CEO may edit anyone; other users only themselves. Only CEO may change
    role or is_active.
    """
    is_ceo = session.role == UserRole.CEO
    if not is_ceo and session.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to edit this user")

    fields = data.model_fields_set
    if not is_ceo and ("role" in fields or "is_active" in fields):
        raise HTTPException(status_code=403, detail="Only CEO can change role or active status")

    user = _get_user_or_404(db, user_id)
    try:
        return user_service.update_user(db, user, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete(
    "/{user_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """Delete a user. Their cases are unassigned first."""
    if session.user_id == user_id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    user = _get_user_or_404(db, user_id)
    user_service.delete_user(db, user)
    return Response(status_code=204)
