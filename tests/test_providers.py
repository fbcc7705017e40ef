"""Tests for provider management."""
import pytest
from httpx import AsyncClient

from app.db.models import Case, Provider


@pytest.mark.asyncio
async def test_list_providers_includes_case_counts(support_client: AsyncClient, provider, case_type, db):
    db.add(Case(case_number="CASE-2026-0001", title="One", case_type_id=case_type.id, provider_id=provider.id))
    db.add(Case(case_number="CASE-2026-0002", title="Two", case_type_id=case_type.id, provider_id=provider.id))
    db.commit()

    response = await support_client.get("/providers")
    assert response.status_code == 200
    [item] = response.json()
    assert item["name"] == "Provider A"
    assert item["cases_count"] == 2


@pytest.mark.asyncio
async def test_support_cannot_create_provider(support_client: AsyncClient):
    response = await support_client.post("/providers", json={"name": "Provider Z"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manager_creates_and_updates_provider(manager_client: AsyncClient):
    response = await manager_client.post(
        "/providers", json={"name": "Provider Z", "risk_level": "HIGH", "type": "MANUAL"}
    )
    assert response.status_code == 201
    provider_id = response.json()["id"]
    assert response.json()["cases_count"] == 0

    response = await manager_client.patch(f"/providers/{provider_id}", json={"risk_level": "MEDIUM"})
    assert response.status_code == 200
    assert response.json()["risk_level"] == "MEDIUM"


@pytest.mark.asyncio
async def test_duplicate_provider_name_conflicts(manager_client: AsyncClient, provider):
    response = await manager_client.post("/providers", json={"name": provider.name})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_provider_requires_admin(manager_client: AsyncClient, provider):
    response = await manager_client.delete(f"/providers/{provider.id}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_provider_with_cases_is_blocked(admin_client: AsyncClient, provider, case_type, db):
    db.add(Case(case_number="CASE-2026-0001", title="Blocking", case_type_id=case_type.id, provider_id=provider.id))
    db.commit()

    response = await admin_client.delete(f"/providers/{provider.id}")
    assert response.status_code == 400
    assert response.json()["cases_count"] == 1
    assert db.query(Provider).count() == 1


@pytest.mark.asyncio
async def test_delete_unused_provider(admin_client: AsyncClient, provider, db):
    response = await admin_client.delete(f"/providers/{provider.id}")
    assert response.status_code == 204
    assert db.query(Provider).count() == 0


@pytest.mark.asyncio
async def test_unknown_provider_returns_404(support_client: AsyncClient):
    response = await support_client.get("/providers/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
