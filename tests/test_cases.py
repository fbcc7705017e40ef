"""Tests for case creation, workflow, listing, bulk actions and timeline."""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import event

from app.db.enums import UserRole
from app.db.models import Case, CaseActivity, NotificationOutbox, Order, Provider
from app.services import case_service, export_service


async def create_case(client: AsyncClient, case_type, **overrides) -> dict:
    body = {"title": "Customer cannot log in", "case_type_id": str(case_type.id), **overrides}
    response = await client.post("/cases", json=body)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# Create
# =============================================================================

@pytest.mark.asyncio
async def test_create_case_uses_case_type_defaults(admin_client: AsyncClient, case_type):
    before = datetime.now(timezone.utc)
    data = await create_case(admin_client, case_type)

    year = datetime.now(timezone.utc).year
    assert data["case_number"] == f"CASE-{year}-0001"
    assert data["status"] == "NEW"
    assert data["severity"] == "NORMAL"
    assert data["source"] == "MANUAL"

    deadline = datetime.fromisoformat(data["sla_deadline"])
    expected = before + timedelta(minutes=120)
    assert abs((deadline - expected).total_seconds()) < 60


@pytest.mark.asyncio
async def test_case_numbers_increment(admin_client: AsyncClient, case_type):
    first = await create_case(admin_client, case_type)
    second = await create_case(admin_client, case_type)
    assert first["case_number"].endswith("-0001")
    assert second["case_number"].endswith("-0002")


@pytest.mark.asyncio
async def test_case_number_skips_taken_numbers(admin_client: AsyncClient, case_type, db):
    year = datetime.now(timezone.utc).year
    db.add(Case(
        case_number=f"CASE-{year}-0002",
        title="Imported",
        case_type_id=case_type.id,
        created_at=datetime(year - 1, 12, 31, tzinfo=timezone.utc),
    ))
    db.commit()

    first = await create_case(admin_client, case_type)
    second = await create_case(admin_client, case_type)
    assert first["case_number"] == f"CASE-{year}-0001"
    assert second["case_number"] == f"CASE-{year}-0003"


@pytest.mark.asyncio
async def test_explicit_severity_overrides_default(admin_client: AsyncClient, case_type):
    data = await create_case(admin_client, case_type, severity="CRITICAL")
    assert data["severity"] == "CRITICAL"


@pytest.mark.asyncio
async def test_auto_assigns_least_loaded_support_user(admin_client: AsyncClient, case_type, make_user, db):
    busy = make_user(UserRole.SUPPORT, name="Busy")
    idle = make_user(UserRole.TECHNICIAN, name="Idle")
    make_user(UserRole.MANAGER, name="Not assignable")
    db.add(Case(case_number="CASE-2000-0001", title="Open", case_type_id=case_type.id, owner_id=busy.id))
    db.commit()

    data = await create_case(admin_client, case_type)
    assert data["owner"]["id"] == str(idle.id)

    titles = {a["title"] for a in data["activities"]}
    assert {"Case created", "Auto-assigned"} <= titles

    # Auto-assignment always queues a Line case_created message
    line_rows = db.query(NotificationOutbox).filter(NotificationOutbox.channel == "LINE").all()
    assert [r.event for r in line_rows] == ["case_created"]


@pytest.mark.asyncio
async def test_no_assignable_users_leaves_case_unassigned(admin_client: AsyncClient, case_type, db):
    data = await create_case(admin_client, case_type)
    assert data["owner"] is None
    assert db.query(NotificationOutbox).count() == 0


@pytest.mark.asyncio
async def test_explicit_owner_skips_auto_assignment(admin_client: AsyncClient, case_type, support_user, admin_user):
    data = await create_case(admin_client, case_type, owner_id=str(admin_user.id))
    assert data["owner"]["id"] == str(admin_user.id)
    assert "Auto-assigned" not in {a["title"] for a in data["activities"]}


@pytest.mark.asyncio
async def test_required_provider_and_order(admin_client: AsyncClient, payment_case_type, provider):
    response = await admin_client.post(
        "/cases", json={"title": "Top-up missing", "case_type_id": str(payment_case_type.id)}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Provider is required for this case type"

    response = await admin_client.post(
        "/cases",
        json={
            "title": "Top-up missing",
            "case_type_id": str(payment_case_type.id),
            "provider_id": str(provider.id),
        },
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Order ID is required for this case type"


@pytest.mark.asyncio
async def test_create_with_orders_updates_provider_stats(admin_client: AsyncClient, payment_case_type, provider, db):
    data = await create_case(
        admin_client,
        payment_case_type,
        provider_id=str(provider.id),
        orders=[{"order_id": "ORD-1", "amount": "150.00"}, {"order_id": "ORD-2"}],
    )
    assert data["severity"] == "CRITICAL"
    assert sorted(o["order_id"] for o in data["orders"]) == ["ORD-1", "ORD-2"]
    assert all(o["status"] == "PENDING" for o in data["orders"])

    db.refresh(provider)
    assert provider.total_cases == 1


@pytest.mark.asyncio
async def test_unknown_case_type_returns_400(admin_client: AsyncClient):
    response = await admin_client.post(
        "/cases", json={"title": "Ghost", "case_type_id": "00000000-0000-0000-0000-000000000000"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Case type not found"


@pytest.mark.asyncio
async def test_title_too_short_is_422(admin_client: AsyncClient, case_type):
    response = await admin_client.post("/cases", json={"title": "ab", "case_type_id": str(case_type.id)})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_enqueues_subscribed_webhooks(admin_client: AsyncClient, case_type, db):
    from app.db.models import Webhook

    db.add(Webhook(name="Ops", url="https://hooks.example.com/a", secret="s" * 32, events=["case.created"], retry_count=2))
    db.add(Webhook(name="Other", url="https://hooks.example.com/b", secret="s" * 32, events=["case.closed"]))
    db.commit()

    await create_case(admin_client, case_type)

    rows = db.query(NotificationOutbox).filter(NotificationOutbox.channel == "WEBHOOK").all()
    assert len(rows) == 1
    assert rows[0].event == "case.created"
    assert rows[0].max_attempts == 3


# =============================================================================
# Status workflow
# =============================================================================

@pytest.mark.asyncio
async def test_invalid_transition_is_rejected(admin_client: AsyncClient, case_type):
    case = await create_case(admin_client, case_type)
    response = await admin_client.patch(f"/cases/{case['id']}", json={"status": "RESOLVED"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot change status from NEW to RESOLVED"


@pytest.mark.asyncio
async def test_full_lifecycle(admin_client: AsyncClient, payment_case_type, provider, db):
    case = await create_case(
        admin_client,
        payment_case_type,
        provider_id=str(provider.id),
        orders=[{"order_id": "ORD-9"}],
    )

    response = await admin_client.patch(f"/cases/{case['id']}", json={"status": "FIXING"})
    assert response.status_code == 200
    fixing = response.json()
    assert fixing["status"] == "FIXING"
    assert fixing["first_response_at"] is not None

    response = await admin_client.patch(
        f"/cases/{case['id']}",
        json={"status": "RESOLVED", "root_cause": "PROVIDER_ISSUE", "resolution": "Provider re-sent"},
    )
    resolved = response.json()
    assert resolved["status"] == "RESOLVED"
    assert resolved["resolved_at"] is not None
    assert resolved["root_cause"] == "PROVIDER_ISSUE"
    assert resolved["orders"][0]["status"] == "COMPLETED"

    db.refresh(provider)
    assert provider.resolved_cases == 1

    # Reopen, then resolve again: provider counter is not incremented twice
    response = await admin_client.patch(f"/cases/{case['id']}", json={"status": "FIXING"})
    assert response.status_code == 200
    activity_types = [a["type"] for a in response.json()["activities"]]
    assert "REOPENED" in activity_types

    await admin_client.patch(f"/cases/{case['id']}", json={"status": "RESOLVED"})
    db.refresh(provider)
    assert provider.resolved_cases == 1

    line_events = [
        r.event for r in db.query(NotificationOutbox).filter(NotificationOutbox.channel == "LINE").all()
    ]
    assert line_events.count("case_resolved") == 2


@pytest.mark.asyncio
async def test_resolving_with_new_provider_credits_new_provider(admin_client: AsyncClient, case_type, provider, db):
    other = Provider(name="Provider B")
    db.add(other)
    db.commit()
    case = await create_case(admin_client, case_type, provider_id=str(provider.id))
    await admin_client.patch(f"/cases/{case['id']}", json={"status": "FIXING"})

    response = await admin_client.patch(
        f"/cases/{case['id']}", json={"status": "RESOLVED", "provider_id": str(other.id)}
    )
    assert response.status_code == 200
    assert response.json()["provider"]["id"] == str(other.id)

    db.refresh(provider)
    db.refresh(other)
    assert provider.resolved_cases == 0
    assert other.resolved_cases == 1


@pytest.mark.asyncio
async def test_close_cancels_pending_orders(admin_client: AsyncClient, payment_case_type, provider, db):
    case = await create_case(
        admin_client,
        payment_case_type,
        provider_id=str(provider.id),
        orders=[{"order_id": "ORD-5"}],
    )
    response = await admin_client.patch(f"/cases/{case['id']}", json={"status": "CLOSED"})
    assert response.status_code == 200
    assert response.json()["closed_at"] is not None
    assert db.query(Order).one().status == "CANCELLED"


@pytest.mark.asyncio
async def test_severity_and_owner_changes_are_logged(admin_client: AsyncClient, case_type, support_user):
    case = await create_case(admin_client, case_type, owner_id=str(support_user.id))
    response = await admin_client.patch(
        f"/cases/{case['id']}", json={"severity": "HIGH", "owner_id": None}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["severity"] == "HIGH"
    assert data["owner"] is None
    types = [a["type"] for a in data["activities"]]
    assert "SEVERITY_CHANGED" in types
    assert "ASSIGNED" in types


# =============================================================================
# Listing
# =============================================================================

@pytest.mark.asyncio
async def test_list_defaults_to_severity_order(support_client: AsyncClient, case_type):
    await create_case(support_client, case_type, title="Low one", severity="LOW")
    await create_case(support_client, case_type, title="Critical one", severity="CRITICAL")
    await create_case(support_client, case_type, title="Normal one")

    response = await support_client.get("/cases")
    assert response.status_code == 200
    data = response.json()
    assert [c["severity"] for c in data["items"]] == ["CRITICAL", "NORMAL", "LOW"]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 3, "total_pages": 1}


@pytest.mark.asyncio
async def test_list_filters_and_search(support_client: AsyncClient, case_type):
    a = await create_case(support_client, case_type, title="Payment gateway down", customer_name="Somchai")
    await create_case(support_client, case_type, title="Slow website")
    await support_client.patch(f"/cases/{a['id']}", json={"status": "FIXING"})

    response = await support_client.get("/cases", params={"status": "NEW,FIXING"})
    assert response.json()["pagination"]["total"] == 2

    response = await support_client.get("/cases", params={"status": "FIXING"})
    assert [c["id"] for c in response.json()["items"]] == [a["id"]]

    response = await support_client.get("/cases", params={"search": "somchai"})
    assert [c["id"] for c in response.json()["items"]] == [a["id"]]

    response = await support_client.get("/cases", params={"category": "PAYMENT"})
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_list_pagination(support_client: AsyncClient, case_type):
    for i in range(3):
        await create_case(support_client, case_type, title=f"Case number {i}")

    response = await support_client.get("/cases", params={"limit": 2, "page": 2, "sort": "createdAt-asc"})
    data = response.json()
    assert len(data["items"]) == 1
    assert data["items"][0]["title"] == "Case number 2"
    assert data["pagination"]["total_pages"] == 2


@pytest.mark.asyncio
async def test_list_invalid_sort_is_422(support_client: AsyncClient):
    response = await support_client.get("/cases", params={"sort": "title"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_counts_by_category(support_client: AsyncClient, case_type, payment_case_type, provider):
    await create_case(support_client, case_type)
    await create_case(
        support_client,
        payment_case_type,
        provider_id=str(provider.id),
        orders=[{"order_id": "ORD-1"}],
    )

    response = await support_client.get("/cases/counts")
    assert response.status_code == 200
    assert response.json() == {"all": 2, "PAYMENT": 1, "ORDER": 0, "SYSTEM": 1, "PROVIDER": 0, "OTHER": 0}


# =============================================================================
# Bulk actions
# =============================================================================

@pytest.mark.asyncio
async def test_bulk_resolve_skips_transition_check(admin_client: AsyncClient, case_type, db):
    a = await create_case(admin_client, case_type)
    b = await create_case(admin_client, case_type)

    response = await admin_client.patch(
        "/cases/bulk", json={"case_ids": [a["id"], b["id"]], "action": "resolve"}
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "updated": 2}

    statuses = {c.status for c in db.query(Case).all()}
    assert statuses == {"RESOLVED"}
    titles = {a.title for a in db.query(CaseActivity).all()}
    assert "Case resolved (bulk)" in titles


@pytest.mark.asyncio
async def test_bulk_assign(admin_client: AsyncClient, case_type, support_user, make_user, db):
    a = await create_case(admin_client, case_type)
    assert a["owner"]["id"] == str(support_user.id)
    tech = make_user(UserRole.TECHNICIAN, name="Tech")

    response = await admin_client.patch(
        "/cases/bulk",
        json={"case_ids": [a["id"]], "action": "assign", "assignee_id": str(tech.id)},
    )
    assert response.status_code == 200
    assert db.query(Case).one().owner_id == tech.id
    assert "Case assigned (bulk)" in {act.title for act in db.query(CaseActivity).all()}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body,detail",
    [
        ({"case_ids": [], "action": "resolve"}, "Invalid case_ids"),
        ({"case_ids": ["not-a-uuid"], "action": "resolve"}, "Invalid case_ids"),
        ({"case_ids": ["00000000-0000-0000-0000-000000000009"], "action": "close"}, "Invalid case_ids"),
        ({"case_ids": ["00000000-0000-0000-0000-000000000001"], "action": "archive"}, "Invalid action"),
        ({"case_ids": ["00000000-0000-0000-0000-000000000001"], "action": "assign"}, "Missing assignee_id"),
    ],
)
async def test_bulk_validation(admin_client: AsyncClient, body, detail):
    response = await admin_client.patch("/cases/bulk", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == detail


# =============================================================================
# Delete + timeline
# =============================================================================

@pytest.mark.asyncio
async def test_delete_requires_manager(support_client: AsyncClient, case_type):
    case = await create_case(support_client, case_type)
    response = await support_client.delete(f"/cases/{case['id']}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_soft_delete_hides_case(manager_client: AsyncClient, case_type, db):
    case = await create_case(manager_client, case_type)
    response = await manager_client.delete(f"/cases/{case['id']}")
    assert response.status_code == 204

    assert (await manager_client.get(f"/cases/{case['id']}")).status_code == 404
    assert (await manager_client.get("/cases")).json()["pagination"]["total"] == 0
    assert db.query(Case).one().is_deleted is True


@pytest.mark.asyncio
async def test_add_note_to_timeline(support_client: AsyncClient, case_type, support_user):
    case = await create_case(support_client, case_type)
    response = await support_client.post(
        f"/cases/{case['id']}/activities",
        json={"title": "Called customer", "description": "Will retry payment tonight"},
    )
    assert response.status_code == 201
    note = response.json()
    assert note["type"] == "NOTE_ADDED"
    assert note["user"]["id"] == str(support_user.id)

    response = await support_client.get(f"/cases/{case['id']}/activities")
    assert response.status_code == 200
    assert response.json()[0]["title"] == "Called customer"


# =============================================================================
# Export
# =============================================================================

@pytest.mark.asyncio
async def test_export_csv(support_client: AsyncClient, case_type):
    await create_case(support_client, case_type, title="=HYPERLINK(evil)", customer_name='Say "hi"')

    response = await support_client.get("/cases/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="cases-export-')
    assert disposition.endswith('.csv"')

    body = response.content.decode("utf-8")
    assert body.startswith("\ufeff")
    lines = body.lstrip("\ufeff").splitlines()
    assert lines[0].startswith('"Case Number","Title","Category"')
    assert len(lines) == 2
    assert "\"'=HYPERLINK(evil)\"" in lines[1]
    assert '"Say ""hi"""' in lines[1]
    assert '"Support"' in lines[1]


@pytest.mark.asyncio
async def test_export_json_respects_filters(support_client: AsyncClient, case_type):
    a = await create_case(support_client, case_type, title="Fixing case")
    await create_case(support_client, case_type, title="New case")
    await support_client.patch(f"/cases/{a['id']}", json={"status": "FIXING"})

    response = await support_client.get("/cases/export", params={"format": "json", "status": "FIXING"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["data"][0]["case_number"] == a["case_number"]
    assert data["data"][0]["case_type"]["category"] == "SYSTEM"
    assert "exported_at" in data


@pytest.mark.asyncio
async def test_export_rejects_unknown_format(support_client: AsyncClient):
    response = await support_client.get("/cases/export", params={"format": "xlsx"})
    assert response.status_code == 422


def test_export_loads_relations_without_per_case_queries(db, case_type):
    for i in range(4):
        case = Case(case_number=f"CASE-2026-{i + 1:04d}", title=f"Export {i}", case_type_id=case_type.id)
        case.orders.append(Order(order_id=f"ORD-{i}"))
        db.add(case)
    db.commit()
    db.expire_all()

    statements: list[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db.bind, "before_cursor_execute", before_cursor_execute)
    try:
        cases = case_service.list_cases_for_export(db, case_service.CaseFilters())
        export_service.cases_to_csv(cases)
        export_service.cases_to_json(cases)
    finally:
        event.remove(db.bind, "before_cursor_execute", before_cursor_execute)

    assert len(cases) == 4
    # cases + case types + owners + providers + orders
    assert len(statements) <= 5
