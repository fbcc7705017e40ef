"""Tests for user management and role checks."""
import pytest
from httpx import AsyncClient

from app.db.enums import UserRole
from app.db.models import Case, User


@pytest.mark.asyncio
async def test_list_users_requires_admin(support_client: AsyncClient):
    response = await support_client.get("/users")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_lists_users_by_name(admin_client: AsyncClient, make_user):
    make_user(UserRole.SUPPORT, name="Zed")
    make_user(UserRole.TECHNICIAN, name="Bea")
    response = await admin_client.get("/users")
    assert response.status_code == 200
    names = [u["name"] for u in response.json()]
    assert names == sorted(names)
    assert "password_hash" not in response.json()[0]


@pytest.mark.asyncio
async def test_admin_creates_user(admin_client: AsyncClient, db):
    response = await admin_client.post(
        "/users",
        json={"email": "New.Person@mims.app", "name": "New Person", "password": "secret123", "role": "TECHNICIAN"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new.person@mims.app"
    assert data["role"] == "TECHNICIAN"

    user = db.query(User).filter(User.email == "new.person@mims.app").one()
    assert user.password_hash != "secret123"


@pytest.mark.asyncio
async def test_create_user_duplicate_email(admin_client: AsyncClient, support_user):
    response = await admin_client.post(
        "/users",
        json={"email": support_user.email, "name": "Dup", "password": "secret123"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already exists"


@pytest.mark.asyncio
async def test_create_user_password_over_72_bytes(admin_client: AsyncClient):
    response = await admin_client.post(
        "/users",
        json={"email": "thai@mims.app", "name": "Thai", "password": "ก" * 30},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Password is too long"


@pytest.mark.asyncio
async def test_user_can_read_self_but_not_others(support_client: AsyncClient, support_user, admin_user):
    own = await support_client.get(f"/users/{support_user.id}")
    assert own.status_code == 200

    other = await support_client.get(f"/users/{admin_user.id}")
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_user_updates_own_name(support_client: AsyncClient, support_user):
    response = await support_client.patch(f"/users/{support_user.id}", json={"name": "Renamed"})
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"


@pytest.mark.asyncio
async def test_only_ceo_changes_role(admin_client: AsyncClient, client_for, make_user, support_user):
    response = await admin_client.patch(f"/users/{support_user.id}", json={"role": "MANAGER"})
    assert response.status_code == 403

    ceo = make_user(UserRole.CEO, name="Chief")
    async with client_for(ceo) as c:
        response = await c.patch(f"/users/{support_user.id}", json={"role": "MANAGER"})
    assert response.status_code == 200
    assert response.json()["role"] == "MANAGER"


@pytest.mark.asyncio
async def test_password_change_revokes_sessions(support_client: AsyncClient, support_user, db):
    before = support_user.token_version
    response = await support_client.patch(f"/users/{support_user.id}", json={"password": "another-pass"})
    assert response.status_code == 200
    db.refresh(support_user)
    assert support_user.token_version == before + 1

    # Old cookie is no longer valid
    response = await support_client.get("/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(admin_client: AsyncClient, admin_user):
    response = await admin_client.delete(f"/users/{admin_user.id}")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_user_unassigns_cases(admin_client: AsyncClient, support_user, case_type, db):
    case = Case(case_number="CASE-2026-0001", title="Owned", case_type_id=case_type.id, owner_id=support_user.id)
    db.add(case)
    db.commit()

    response = await admin_client.delete(f"/users/{support_user.id}")
    assert response.status_code == 204

    db.refresh(case)
    assert case.owner_id is None
    assert db.query(User).filter(User.id == support_user.id).first() is None
