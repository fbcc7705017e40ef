"""User service - account management."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.db.models import Case, User
from app.schemas.user import UserCreate, UserUpdate

MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    return db.query(User).filter(User.email == email.lower()).first()


def list_users(db: Session, active: bool | None = None) -> list[User]:
    query = db.query(User)
    if active is not None:
        query = query.filter(User.is_active.is_(active))
    return query.order_by(User.name.asc()).all()


def _check_password(password: str) -> None:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError("Password is too long")


def create_user(db: Session, data: UserCreate) -> User:
    """
    Create a user account.

    Raises:
        ValueError: Email already exists or password too long
    """
    if get_user_by_email(db, data.email):
        raise ValueError("Email already exists")
    _check_password(data.password)

    user = User(
        email=data.email.lower(),
        name=data.name.strip(),
        password_hash=hash_password(data.password),
        role=data.role.value,
        is_active=data.is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user: User, data: UserUpdate) -> User:
    """
    Apply a partial update.

    Password changes and deactivation bump token_version so existing
    sessions stop working.
    """
    updates = data.model_dump(exclude_unset=True)

    if "email" in updates and updates["email"] is not None:
        email = updates["email"].lower()
        existing = get_user_by_email(db, email)
        if existing and existing.id != user.id:
            raise ValueError("Email already exists")
        user.email = email

    if updates.get("name") is not None:
        user.name = updates["name"].strip()

    if updates.get("password"):
        _check_password(updates["password"])
        user.password_hash = hash_password(updates["password"])
        user.token_version += 1

    if updates.get("role") is not None:
        user.role = updates["role"].value

    if updates.get("is_active") is not None and updates["is_active"] != user.is_active:
        user.is_active = updates["is_active"]
        if not user.is_active:
            user.token_version += 1

    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    """Delete a user after unassigning their cases."""
    db.query(Case).filter(Case.owner_id == user.id).update(
        {Case.owner_id: None}, synchronize_session=False
    )
    db.delete(user)
    db.commit()

