"""Tests for login, logout, session cookies and CSRF."""
import pytest
from httpx import AsyncClient

from app.core.deps import COOKIE_NAME
from app.db.enums import UserRole
from tests.conftest import TEST_PASSWORD


@pytest.mark.asyncio
async def test_login_sets_session_cookie(client: AsyncClient, support_user):
    response = await client.post(
        "/auth/login", json={"email": support_user.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == support_user.email
    assert data["role"] == "SUPPORT"
    assert COOKIE_NAME in response.cookies


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(client: AsyncClient, support_user):
    response = await client.post(
        "/auth/login", json={"email": support_user.email.upper(), "password": TEST_PASSWORD}
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password_returns_401(client: AsyncClient, support_user):
    response = await client.post(
        "/auth/login", json={"email": support_user.email, "password": "wrong-password"}
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_inactive_user_returns_401(client: AsyncClient, make_user):
    user = make_user(UserRole.SUPPORT, is_active=False)
    response = await client.post(
        "/auth/login", json={"email": user.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_is_rate_limited(client: AsyncClient, support_user):
    """5 attempts per 15 minutes per IP."""
    for _ in range(5):
        response = await client.post(
            "/auth/login", json={"email": support_user.email, "password": "nope"}
        )
        assert response.status_code == 401

    response = await client.post(
        "/auth/login", json={"email": support_user.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_me_requires_session(client: AsyncClient):
    response = await client.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_returns_current_user(support_client: AsyncClient, support_user):
    response = await support_client.get("/auth/me")
    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == str(support_user.id)
    assert data["name"] == "Support"


@pytest.mark.asyncio
async def test_garbage_cookie_returns_401(client_for):
    async with client_for() as c:
        c.cookies.set(COOKIE_NAME, "not-a-jwt")
        response = await c.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_bumped_token_version_revokes_session(client_for, support_user, db):
    async with client_for(support_user) as c:
        support_user.token_version += 1
        db.commit()
        response = await c.get("/auth/me")
    assert response.status_code == 401
    assert response.json()["detail"] == "Session revoked"


@pytest.mark.asyncio
async def test_mutation_without_csrf_header_is_rejected(client_for, support_user):
    async with client_for(support_user, csrf=False) as c:
        response = await c.post("/auth/logout")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_logout_clears_cookie(support_client: AsyncClient):
    response = await support_client.post("/auth/logout")
    assert response.status_code == 200
    assert response.json() == {"status": "logged_out"}
    assert COOKIE_NAME in response.headers.get("set-cookie", "")
