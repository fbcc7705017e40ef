"""Authentication router - email/password login with session cookies."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import COOKIE_NAME, get_current_session, get_db, require_csrf_header
from app.core.rate_limit import AUTH_LIMIT, limiter
from app.db.enums import UserRole
from app.schemas.auth import LoginRequest, MeResponse, UserSession
from app.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


@router.post("/login", response_model=MeResponse)
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Email + password login.

    Sets an httponly session cookie. Unknown email, wrong password and
    disabled accounts all return the same 401.
    """
    user = auth_service.authenticate(db, body.email, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    _set_session_cookie(response, auth_service.create_session_for_user(user))
    logger.info("User logged in user_id=%s", user.id)
    return MeResponse(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=UserRole(user.role),
    )


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/me", response_model=MeResponse)
def get_me(session: UserSession = Depends(get_current_session)):
    """Current authenticated user."""
    return MeResponse(
        user_id=session.user_id,
        email=session.email,
        name=session.name,
        role=session.role,
    )
