"""
Notification outbox - transactional enqueue of Line messages and webhooks.

Case changes write outbox rows in the same transaction as the change; the
process-outbox scheduled job delivers them and tracks retries.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import OutboxChannel, OutboxStatus
from app.db.models import Case, NotificationOutbox
from app.services import line_service, webhook_service

logger = logging.getLogger(__name__)

LINE_MAX_ATTEMPTS = 3
SKIPPED_LINE_REASONS = {"no_channels", "no_template"}


# =============================================================================
# Payload builders
# =============================================================================

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def case_event_data(case: Case, **extra: Any) -> dict[str, Any]:
    """Webhook `data` block for a case event."""
    data = {
        "case_id": str(case.id),
        "case_number": case.case_number,
        "title": case.title,
        "status": case.status,
        "severity": case.severity,
        "owner_id": str(case.owner_id) if case.owner_id else None,
        "provider_id": str(case.provider_id) if case.provider_id else None,
        "sla_deadline": _iso(case.sla_deadline),
    }
    data.update(extra)
    return data


def line_case_payload(case: Case, **extra: Any) -> dict[str, Any]:
    """Template variables for Line case messages."""
    deadline = case.sla_deadline.strftime("%Y-%m-%d %H:%M") if case.sla_deadline else "-"
    payload = {
        "case_id": str(case.id),
        "case_number": case.case_number,
        "title": case.title,
        "status": case.status,
        "severity": case.severity,
        "customer_name": case.customer_name or "",
        "owner_name": case.owner.name if case.owner else "",
        "provider_name": case.provider.name if case.provider else "",
        "sla_deadline": deadline,
    }
    payload.update(extra)
    return payload


# =============================================================================
# Enqueue
# =============================================================================

def enqueue_line(db: Session, event: str, payload: dict[str, Any]) -> NotificationOutbox:
    """Queue a Line notification. Caller commits."""
    row = NotificationOutbox(
        channel=OutboxChannel.LINE.value,
        event=event,
        payload=payload,
        status=OutboxStatus.PENDING.value,
        max_attempts=LINE_MAX_ATTEMPTS,
    )
    db.add(row)
    return row


def enqueue_webhooks(db: Session, event: str, data: dict[str, Any]) -> list[NotificationOutbox]:
    """
    Queue one delivery per active webhook subscribed to `event`.

    The payload (including timestamp) is fixed at enqueue time so retries
    send identical bodies. Caller commits.
    """
    rows = []
    for webhook in webhook_service.get_subscribed_webhooks(db, event):
        row = NotificationOutbox(
            channel=OutboxChannel.WEBHOOK.value,
            event=event,
            payload=webhook_service.build_payload(event, data),
            webhook_id=webhook.id,
            status=OutboxStatus.PENDING.value,
            max_attempts=(webhook.retry_count or 0) + 1,
        )
        db.add(row)
        rows.append(row)
    return rows


# =============================================================================
# Processing
# =============================================================================

def _mark_sent(row: NotificationOutbox) -> None:
    row.status = OutboxStatus.SENT.value
    row.sent_at = datetime.now(timezone.utc)
    row.attempts += 1
    row.last_error = None


def _mark_failed(row: NotificationOutbox, error: str) -> bool:
    """
    Record a failed attempt.

    Returns True if the row will be retried on a later pass.
    """
    row.attempts += 1
    row.last_error = error[:2000]
    if row.attempts < row.max_attempts:
        row.status = OutboxStatus.PENDING.value
        return True
    row.status = OutboxStatus.FAILED.value
    return False


async def _deliver_line(db: Session, row: NotificationOutbox) -> tuple[bool, str | None]:
    result = await line_service.send_notification(db, row.event, row.payload or {})
    if result.get("success") or result.get("reason") in SKIPPED_LINE_REASONS:
        return True, None
    errors = [r.get("error") for r in result.get("results", []) if r.get("error")]
    return False, "; ".join(errors) or "Line delivery failed"


async def _deliver_webhook(db: Session, row: NotificationOutbox) -> tuple[bool, str | None]:
    webhook = webhook_service.get_webhook(db, row.webhook_id) if row.webhook_id else None
    if not webhook or not webhook.is_active:
        return False, "Webhook not found or inactive"
    result = await webhook_service.deliver(webhook, row.payload or {})
    webhook_service.record_delivery_result(webhook, result)
    return bool(result["success"]), result.get("error")


async def process_outbox(db: Session, limit: int | None = None) -> dict[str, int]:
    """
    Single pass over pending outbox rows, oldest first.

    Returns:
        {processed, sent, failed, retried}
    """
    batch = limit or settings.OUTBOX_BATCH_SIZE
    rows = (
        db.query(NotificationOutbox)
        .filter(NotificationOutbox.status == OutboxStatus.PENDING.value)
        .order_by(NotificationOutbox.created_at.asc())
        .limit(batch)
        .all()
    )

    stats = {"processed": 0, "sent": 0, "failed": 0, "retried": 0}
    for row in rows:
        stats["processed"] += 1
        try:
            if row.channel == OutboxChannel.WEBHOOK.value:
                ok, error = await _deliver_webhook(db, row)
            else:
                ok, error = await _deliver_line(db, row)
        except Exception as exc:
            # A broken row must not block the rows queued behind it
            logger.exception("Outbox row %s (%s) raised during delivery", row.id, row.event)
            db.rollback()
            ok, error = False, f"{type(exc).__name__}: {exc}"

        if ok:
            _mark_sent(row)
            stats["sent"] += 1
        elif _mark_failed(row, error or "Delivery failed"):
            stats["retried"] += 1
        else:
            logger.warning(
                "Outbox row %s permanently failed after %s attempts",
                row.id, row.attempts,
            )
            stats["failed"] += 1
        db.commit()

    if stats["processed"]:
        logger.info("Outbox pass: %s", stats)
    return stats
