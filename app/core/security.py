"""Session JWTs and bcrypt password hashes."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
import jwt

from app.core.config import settings

JWT_ALGORITHM = "HS256"


def create_session_token(user_id: UUID, role: str, token_version: int) -> str:
    """Signed cookie token carrying the user id, role and revocation counter."""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "token_version": token_version,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> dict:
    """
    Verify a session token against JWT_SECRET, then JWT_SECRET_PREVIOUS.

    Raises:
        jwt.InvalidTokenError: No configured secret verifies the token
    """
    secrets = settings.jwt_secrets
    for secret in secrets[:-1]:
        try:
            return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        except jwt.InvalidTokenError:
            pass
    return jwt.decode(token, secrets[-1], algorithms=[JWT_ALGORITHM])


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """False for a missing or malformed stored hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False
