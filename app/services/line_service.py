"""Line Messaging API notifications rendered from stored templates."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models import LineChannel, NotificationTemplate
from app.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 0.5

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(key: str) -> str:
    """caseNumber -> case_number; already-snake keys pass through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def normalize_payload(payload: dict[str, Any]) -> dict[str, str]:
    """Snake-case keys and stringify values (None -> "")."""
    normalized: dict[str, str] = {}
    for key, value in payload.items():
        normalized[to_snake_case(str(key))] = "" if value is None else str(value)
    return normalized


def render_template(template: str, payload: dict[str, Any]) -> str:
    """Replace {{variable}} placeholders. Unknown variables render as empty."""
    variables = normalize_payload(payload)
    return VARIABLE_PATTERN.sub(lambda m: variables.get(m.group(1), ""), template)


def get_channels_for_event(db: Session, event: str) -> list[LineChannel]:
    active = db.query(LineChannel).filter(LineChannel.is_active.is_(True)).all()
    return [c for c in active if event in (c.enabled_events or [])]


def get_template_for_event(db: Session, event: str) -> NotificationTemplate | None:
    return (
        db.query(NotificationTemplate)
        .filter(
            NotificationTemplate.event == event,
            NotificationTemplate.is_active.is_(True),
        )
        .order_by(NotificationTemplate.created_at.asc())
        .first()
    )


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.LINE_TIMEOUT_SECONDS)


def _build_request(channel: LineChannel, message: str) -> tuple[str, dict]:
    base = settings.LINE_API_BASE_URL.rstrip("/")
    body: dict[str, Any] = {"messages": [{"type": "text", "text": message}]}
    if channel.default_group_id:
        body["to"] = channel.default_group_id
        return f"{base}/push", body
    return f"{base}/broadcast", body


async def _send_to_channel(client: httpx.AsyncClient, channel: LineChannel, message: str) -> dict:
    url, body = _build_request(channel, message)
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {channel.access_token}",
    }
    result = {"channel_id": channel.id, "channel_name": channel.name}
    try:
        response = await request_with_retries(
            lambda: client.post(url, json=body, headers=headers),
            base_delay=RETRY_BASE_DELAY,
        )
    except httpx.HTTPError as exc:
        logger.warning("Line push to channel %s failed: %s", channel.name, type(exc).__name__)
        return {**result, "success": False, "error": str(exc) or type(exc).__name__}

    if response.is_success:
        logger.info("Line notification sent to channel %s", channel.name)
        return {**result, "success": True, "error": None}

    logger.warning("Line API error for channel %s: %s", channel.name, response.status_code)
    return {**result, "success": False, "error": f"HTTP {response.status_code}: {response.text[:200]}"}


async def send_notification(db: Session, event: str, payload: dict[str, Any]) -> dict:
    """
    Send a Line message for an event to every subscribed channel.

    Returns:
        {success, sent, total, results} or {success: False, reason} when no
        channel/template matches.
    """
    channels = get_channels_for_event(db, event)
    if not channels:
        logger.info("No active Line channels for event %s", event)
        return {"success": False, "sent": 0, "total": 0, "results": [], "reason": "no_channels"}

    template = get_template_for_event(db, event)
    if not template:
        logger.info("No active template for event %s", event)
        return {"success": False, "sent": 0, "total": 0, "results": [], "reason": "no_template"}

    message = render_template(template.template, {"event": event, **payload})

    results = []
    async with _http_client() as client:
        for channel in channels:
            results.append(await _send_to_channel(client, channel, message))

    sent = sum(1 for r in results if r["success"])
    return {"success": sent > 0, "sent": sent, "total": len(channels), "results": results}


# =============================================================================
# Channel + template management
# =============================================================================

def list_channels(db: Session) -> list[LineChannel]:
    return db.query(LineChannel).order_by(LineChannel.created_at.desc()).all()


def get_channel(db: Session, channel_id) -> LineChannel | None:
    return db.query(LineChannel).filter(LineChannel.id == channel_id).first()


def create_channel(db: Session, data) -> LineChannel:
    channel = LineChannel(**data.model_dump())
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel


def update_channel(db: Session, channel: LineChannel, data) -> LineChannel:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field != "default_group_id":
            continue
        setattr(channel, field, value)
    db.commit()
    db.refresh(channel)
    return channel


def delete_channel(db: Session, channel: LineChannel) -> None:
    db.delete(channel)
    db.commit()


def list_templates(db: Session) -> list[NotificationTemplate]:
    return db.query(NotificationTemplate).order_by(NotificationTemplate.event.asc()).all()


def get_template(db: Session, template_id) -> NotificationTemplate | None:
    return db.query(NotificationTemplate).filter(NotificationTemplate.id == template_id).first()


def create_template(db: Session, data) -> NotificationTemplate:
    template = NotificationTemplate(**data.model_dump())
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def update_template(db: Session, template: NotificationTemplate, data) -> NotificationTemplate:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        setattr(template, field, value)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, template: NotificationTemplate) -> None:
    db.delete(template)
    db.commit()
