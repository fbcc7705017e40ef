"""Authentication service - credential checks and session creation."""

import logging

from sqlalchemy.orm import Session

from app.core.security import create_session_token, verify_password
from app.db.models import User
from app.services.user_service import get_user_by_email

logger = logging.getLogger(__name__)


def authenticate(db: Session, email: str, password: str) -> User | None:
    """
    Resolve a user from email + password.

    Returns None for unknown email, wrong password, or disabled account so
    callers can return a single generic error.
    """
    user = get_user_by_email(db, email.strip())
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        logger.info("Login rejected for disabled account user_id=%s", user.id)
        return None
    return user


def create_session_for_user(user: User) -> str:
    """Issue a session JWT carrying the user's current token_version."""
    return create_session_token(user.id, user.role, user.token_version)
