"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for each test
- Users for every role, plus session-cookie minting
- HTTPX AsyncClient (anonymous and authenticated with CSRF header)
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Must be set before app modules read settings
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["SENTRY_DSN"] = ""
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.deps import COOKIE_NAME, get_db
from app.core.rate_limit import limiter
from app.core.security import create_session_token, hash_password
from app.db.base import Base
from app.db.enums import CaseCategory, Severity, UserRole
from app.db.models import CaseType, Provider, User
from app.main import app

TEST_PASSWORD = "Password123!"
CSRF_HEADERS = {"X-Requested-With": "XMLHttpRequest"}

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code is free to commit."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def storage_path(tmp_path, monkeypatch):
    """Local attachment storage rooted in a temp dir."""
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path))
    return tmp_path


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    def _make(role: UserRole = UserRole.SUPPORT, name: str | None = None, **kwargs) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=kwargs.pop("email", f"{role.value.lower()}-{suffix}@mims.app"),
            name=name or f"{role.value.title()} {suffix}",
            password_hash=hash_password(kwargs.pop("password", TEST_PASSWORD)),
            role=role.value,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(UserRole.ADMIN, name="Admin")


@pytest.fixture
def manager_user(make_user) -> User:
    return make_user(UserRole.MANAGER, name="Manager")


@pytest.fixture
def support_user(make_user) -> User:
    return make_user(UserRole.SUPPORT, name="Support")


@pytest.fixture
def case_type(db: Session) -> CaseType:
    """Plain case type: no required provider/order, no Line notification."""
    ct = CaseType(
        name="Website issue",
        category=CaseCategory.SYSTEM.value,
        default_severity=Severity.NORMAL.value,
        default_sla_minutes=120,
    )
    db.add(ct)
    db.commit()
    db.refresh(ct)
    return ct


@pytest.fixture
def payment_case_type(db: Session) -> CaseType:
    """Case type that requires a provider and an order."""
    ct = CaseType(
        name="Top-up not received",
        category=CaseCategory.PAYMENT.value,
        default_severity=Severity.CRITICAL.value,
        default_sla_minutes=15,
        require_provider=True,
        require_order_id=True,
        line_notification=True,
    )
    db.add(ct)
    db.commit()
    db.refresh(ct)
    return ct


@pytest.fixture
def provider(db: Session) -> Provider:
    p = Provider(name="Provider A", default_sla_minutes=60)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


# =============================================================================
# Client Fixtures
# =============================================================================

def session_cookie(user: User) -> dict[str, str]:
    token = create_session_token(user.id, user.role, user.token_version)
    return {COOKIE_NAME: token}


@dataclass
class ClientFactory:
    """Builds clients that share the test database session."""
    db: Session

    def __call__(self, user: User | None = None, csrf: bool = True) -> AsyncClient:
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=session_cookie(user) if user else None,
            headers=CSRF_HEADERS if csrf else None,
        )


@pytest.fixture
def override_db(db: Session):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client_for(db: Session, override_db) -> ClientFactory:
    """client_for(user) -> AsyncClient authenticated as that user."""
    return ClientFactory(db)


@pytest.fixture
async def client(client_for) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client for public endpoints."""
    async with client_for() as c:
        yield c


@pytest.fixture
async def admin_client(client_for, admin_user) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(admin_user) as c:
        yield c


@pytest.fixture
async def manager_client(client_for, manager_user) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(manager_user) as c:
        yield c


@pytest.fixture
async def support_client(client_for, support_user) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(support_user) as c:
        yield c
