"""Outbound webhook service - endpoint management, signing, and delivery."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.url_validation import safe_url, validate_webhook_url
from app.db.models import Webhook
from app.schemas.webhook import WebhookCreate, WebhookUpdate

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
USER_AGENT = "MIMS-Webhook/1.0"


# =============================================================================
# Signing
# =============================================================================

def generate_secret() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


def sign_payload(body: str, secret: str) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(body: str, signature: str | None, secret: str) -> bool:
    """
    Verify an X-Webhook-Signature header on the receiving side.

    Uses a constant-time comparison.
    """
    if not signature:
        return False
    expected = sign_payload(body, secret)
    return hmac.compare_digest(expected, signature)


def build_payload(event: str, data: dict[str, Any], timestamp: datetime | None = None) -> dict:
    ts = timestamp or datetime.now(timezone.utc)
    return {"event": event, "timestamp": ts.isoformat(), "data": data}


def serialize_payload(payload: dict) -> str:
    return json.dumps(payload, default=str, separators=(",", ":"))


# =============================================================================
# Endpoint management
# =============================================================================

def _validated_url(url: str) -> str:
    return validate_webhook_url(url, allow_insecure=settings.WEBHOOK_ALLOW_INSECURE_URLS)


def list_webhooks(db: Session) -> list[Webhook]:
    return db.query(Webhook).order_by(Webhook.created_at.desc()).all()


def get_webhook(db: Session, webhook_id: UUID) -> Webhook | None:
    return db.query(Webhook).filter(Webhook.id == webhook_id).first()


def get_subscribed_webhooks(db: Session, event: str) -> list[Webhook]:
    """Active webhooks subscribed to an event."""
    active = db.query(Webhook).filter(Webhook.is_active.is_(True)).all()
    return [w for w in active if event in (w.events or [])]


def create_webhook(db: Session, data: WebhookCreate) -> Webhook:
    """
    Create a webhook endpoint.

    Raises:
        ValueError: URL rejected by the outbound URL validator
    """
    webhook = Webhook(
        name=data.name.strip(),
        url=_validated_url(data.url),
        secret=data.secret or generate_secret(),
        events=[e.value for e in data.events],
        description=data.description,
        headers=data.headers,
        is_active=data.is_active,
        retry_count=data.retry_count,
        timeout_ms=data.timeout_ms,
    )
    db.add(webhook)
    db.commit()
    db.refresh(webhook)
    return webhook


def update_webhook(db: Session, webhook: Webhook, data: WebhookUpdate) -> Webhook:
    updates = data.model_dump(exclude_unset=True)

    if updates.get("url"):
        webhook.url = _validated_url(updates.pop("url"))
    else:
        updates.pop("url", None)

    if updates.get("events") is not None:
        webhook.events = [e.value for e in data.events]
    updates.pop("events", None)

    for field, value in updates.items():
        if value is None and field not in ("description", "headers"):
            continue
        setattr(webhook, field, value)

    db.commit()
    db.refresh(webhook)
    return webhook


def delete_webhook(db: Session, webhook: Webhook) -> None:
    db.delete(webhook)
    db.commit()


# =============================================================================
# Delivery
# =============================================================================

def _http_client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


def _build_headers(webhook: Webhook, event: str, signature: str) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: signature,
        EVENT_HEADER: event,
        "User-Agent": USER_AGENT,
    }
    for key, value in (webhook.headers or {}).items():
        headers[str(key)] = str(value)
    return headers


async def deliver(webhook: Webhook, payload: dict) -> dict:
    """
    POST a payload to a webhook once.

    The body is serialized once and the signature computed over those bytes.

    Returns:
        {success, status_code, error}
    """
    body = serialize_payload(payload)
    event = str(payload.get("event", ""))
    headers = _build_headers(webhook, event, sign_payload(body, webhook.secret))
    timeout = max(webhook.timeout_ms or 10000, 1000) / 1000.0

    try:
        async with _http_client(timeout) as client:
            response = await client.post(webhook.url, content=body.encode("utf-8"), headers=headers)
    except httpx.TimeoutException:
        logger.warning("Webhook timed out: %s", safe_url(webhook.url))
        return {"success": False, "status_code": None, "error": "Request timed out"}
    except httpx.HTTPError as exc:
        logger.warning("Webhook delivery error: %s (%s)", safe_url(webhook.url), type(exc).__name__)
        return {"success": False, "status_code": None, "error": str(exc) or type(exc).__name__}

    if 200 <= response.status_code < 300:
        return {"success": True, "status_code": response.status_code, "error": None}

    error = f"HTTP {response.status_code}: {response.reason_phrase}"
    logger.warning("Webhook rejected: %s %s", safe_url(webhook.url), error)
    return {"success": False, "status_code": response.status_code, "error": error}


def record_delivery_result(webhook: Webhook, result: dict) -> None:
    """Update delivery health counters. Caller commits."""
    now = datetime.now(timezone.utc)
    if result.get("success"):
        webhook.last_success_at = now
        webhook.failure_count = 0
    else:
        webhook.last_failure_at = now
        webhook.failure_count = (webhook.failure_count or 0) + 1


async def send_test(db: Session, webhook: Webhook) -> dict:
    """Deliver a sample payload synchronously and record the outcome."""
    payload = build_payload(
        "case.created",
        {
            "case_id": "00000000-0000-0000-0000-000000000000",
            "case_number": "CASE-TEST-0001",
            "title": "Test webhook delivery",
            "status": "NEW",
            "severity": "NORMAL",
            "test": True,
        },
    )
    result = await deliver(webhook, payload)
    record_delivery_result(webhook, result)
    db.commit()
    return result
