"""Tests for Line template rendering, delivery and channel/template admin."""
import json

import httpx
import pytest
from httpx import AsyncClient

from app.db.models import LineChannel, NotificationTemplate
from app.schemas.notification import mask_token
from app.services import line_service


@pytest.fixture
def line_api(monkeypatch):
    """Fake Line Messaging API; responses are popped from `responses` (default 200)."""
    state = {"requests": [], "responses": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        status = state["responses"].pop(0) if state["responses"] else 200
        return httpx.Response(status, json={})

    monkeypatch.setattr(line_service, "RETRY_BASE_DELAY", 0)
    monkeypatch.setattr(
        line_service,
        "_http_client",
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return state


def _channel(db, name="Support team", group_id=None, events=("case_created",), **kwargs) -> LineChannel:
    channel = LineChannel(
        name=name,
        access_token=kwargs.pop("access_token", "line-token-abcdef1234"),
        default_group_id=group_id,
        enabled_events=list(events),
        **kwargs,
    )
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel


def _template(db, event="case_created", text="New case {{case_number}}: {{title}}") -> NotificationTemplate:
    template = NotificationTemplate(name=f"{event} template", event=event, template=text)
    db.add(template)
    db.commit()
    return template


# =============================================================================
# Rendering
# =============================================================================

def test_render_template_substitutes_and_blanks_unknown():
    text = "Case {{case_number}} by {{owner_name}}{{missing}}!"
    assert line_service.render_template(text, {"case_number": "CASE-2026-0001", "owner_name": None}) == (
        "Case CASE-2026-0001 by !"
    )


def test_render_template_accepts_camel_case_keys():
    rendered = line_service.render_template(
        "{{case_number}} / {{minutes_remaining}}", {"caseNumber": "CASE-1", "minutesRemaining": 12}
    )
    assert rendered == "CASE-1 / 12"


def test_mask_token():
    assert mask_token("abcdefgh1234") == "****1234"
    assert mask_token("abc") == "****"


# =============================================================================
# Delivery
# =============================================================================

@pytest.mark.asyncio
async def test_push_to_group_and_broadcast(db, line_api):
    _channel(db, name="Group", group_id="C123")
    _channel(db, name="Everyone")
    _template(db)

    result = await line_service.send_notification(
        db, "case_created", {"case_number": "CASE-2026-0007", "title": "Top-up missing"}
    )
    assert result["success"] is True
    assert result["sent"] == 2
    assert result["total"] == 2

    by_path = {r.url.path.rsplit("/", 1)[-1]: r for r in line_api["requests"]}
    push = json.loads(by_path["push"].content)
    assert push["to"] == "C123"
    assert push["messages"] == [{"type": "text", "text": "New case CASE-2026-0007: Top-up missing"}]
    assert "to" not in json.loads(by_path["broadcast"].content)
    assert by_path["push"].headers["authorization"] == "Bearer line-token-abcdef1234"


@pytest.mark.asyncio
async def test_skips_inactive_and_unsubscribed_channels(db, line_api):
    _channel(db, name="Inactive", is_active=False)
    _channel(db, name="Other events", events=["sla_alert"])
    _template(db)

    result = await line_service.send_notification(db, "case_created", {})
    assert result["reason"] == "no_channels"
    assert line_api["requests"] == []


@pytest.mark.asyncio
async def test_no_template(db, line_api):
    _channel(db)
    result = await line_service.send_notification(db, "case_created", {})
    assert result == {"success": False, "sent": 0, "total": 0, "results": [], "reason": "no_template"}


@pytest.mark.asyncio
async def test_retries_transient_errors(db, line_api):
    _channel(db, group_id="C1")
    _template(db)
    line_api["responses"] = [503, 200]

    result = await line_service.send_notification(db, "case_created", {"case_number": "X"})
    assert result["success"] is True
    assert len(line_api["requests"]) == 2


@pytest.mark.asyncio
async def test_reports_client_errors(db, line_api):
    _channel(db, group_id="C1")
    _template(db)
    line_api["responses"] = [401]

    result = await line_service.send_notification(db, "case_created", {})
    assert result["success"] is False
    assert result["results"][0]["error"].startswith("HTTP 401")
    assert len(line_api["requests"]) == 1


# =============================================================================
# Admin endpoints
# =============================================================================

@pytest.mark.asyncio
async def test_channel_tokens_are_masked(admin_client: AsyncClient, manager_client: AsyncClient):
    response = await admin_client.post(
        "/notifications/channels",
        json={"name": "Ops group", "access_token": "secret-token-9876", "enabled_events": ["case_created"]},
    )
    assert response.status_code == 201
    created = response.json()
    assert created["access_token_masked"] == "****9876"
    assert "access_token" not in created

    response = await manager_client.get("/notifications/channels")
    assert response.status_code == 200
    assert response.json()[0]["access_token_masked"] == "****9876"


@pytest.mark.asyncio
async def test_channel_changes_require_admin(manager_client: AsyncClient, db):
    channel = _channel(db)
    response = await manager_client.patch(f"/notifications/channels/{channel.id}", json={"is_active": False})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_and_delete_channel(admin_client: AsyncClient, db):
    channel = _channel(db, group_id="C1")
    response = await admin_client.patch(
        f"/notifications/channels/{channel.id}", json={"default_group_id": None, "is_active": False}
    )
    assert response.status_code == 200
    assert response.json()["default_group_id"] is None
    assert response.json()["is_active"] is False

    response = await admin_client.delete(f"/notifications/channels/{channel.id}")
    assert response.status_code == 204
    assert db.query(LineChannel).count() == 0


@pytest.mark.asyncio
async def test_template_crud(admin_client: AsyncClient, manager_client: AsyncClient):
    response = await admin_client.post(
        "/notifications/templates",
        json={"name": "Resolved", "event": "case_resolved", "template": "Resolved {{case_number}}"},
    )
    assert response.status_code == 201
    template_id = response.json()["id"]

    response = await admin_client.patch(
        f"/notifications/templates/{template_id}", json={"template": "Done: {{case_number}} {{title}}"}
    )
    assert response.json()["template"] == "Done: {{case_number}} {{title}}"

    listed = (await manager_client.get("/notifications/templates")).json()
    assert [t["event"] for t in listed] == ["case_resolved"]

    response = await admin_client.delete(f"/notifications/templates/{template_id}")
    assert response.status_code == 204
    response = await admin_client.delete(f"/notifications/templates/{template_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_send_test_notification(admin_client: AsyncClient, db, line_api):
    _channel(db, group_id="C9")
    _template(db)

    response = await admin_client.post(
        "/notifications/test",
        json={"event": "case_created", "payload": {"caseNumber": "CASE-TEST", "title": "Hello"}},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["results"][0]["channel_name"] == "Support team"
    sent = json.loads(line_api["requests"][0].content)
    assert sent["messages"][0]["text"] == "New case CASE-TEST: Hello"
