"""FastAPI dependencies: database session, cookie auth, role guards, CSRF."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.security import decode_session_token
from app.db.enums import ROLES_ADMIN, ROLES_MANAGER, UserRole
from app.db.models import User
from app.db.session import SessionLocal
from app.schemas.auth import UserSession

COOKIE_NAME = "mims_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """Request-scoped database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _read_token(token: str) -> tuple[UUID, int | None]:
    try:
        payload = decode_session_token(token)
        return UUID(str(payload["sub"])), payload.get("token_version")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Resolve the logged-in user from the `mims_session` cookie.

    401 when the cookie is missing or invalid, the user is gone or
    deactivated, or the token predates a password change / revocation
    (token_version mismatch).
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id, token_version = _read_token(token)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    if user.token_version != token_version:
        raise HTTPException(status_code=401, detail="Session revoked")
    return user


def get_current_session(request: Request, db: Session = Depends(get_db)) -> UserSession:
    """
    Session context for handlers.

    Role comes from the users table, so role changes apply on the next
    request without re-login.
    """
    user = get_current_user(request, db)
    if not UserRole.has_value(user.role):
        raise HTTPException(status_code=403, detail=f"Unknown role '{user.role}'")
    return UserSession(user_id=user.id, role=UserRole(user.role), email=user.email, name=user.name)


def _role_guard(allowed: set[UserRole], label: str):
    def dependency(request: Request, db: Session = Depends(get_db)) -> UserSession:
        session = get_current_session(request, db)
        if session.role not in allowed:
            raise HTTPException(status_code=403, detail=f"{label} access required")
        return session
    return dependency


require_admin = _role_guard(ROLES_ADMIN, "Admin")
require_manager = _role_guard(ROLES_MANAGER, "Manager")


def require_csrf_header(request: Request) -> None:
    """403 unless the request carries `X-Requested-With: XMLHttpRequest`."""
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(status_code=403, detail="Missing CSRF header")


def is_admin(session: UserSession) -> bool:
    return session.role in ROLES_ADMIN
