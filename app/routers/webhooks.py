"""Outbound webhook management endpoints (admin only)."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header
from app.core.rate_limit import WEBHOOK_LIMIT, limiter
from app.core.structured_logging import build_log_context
from app.schemas.auth import UserSession
from app.schemas.webhook import (
    WebhookCreate,
    WebhookCreated,
    WebhookDeliveryResult,
    WebhookRead,
    WebhookUpdate,
)
from app.services import webhook_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_or_404(db: Session, webhook_id: UUID):
    webhook = webhook_service.get_webhook(db, webhook_id)
    if not webhook:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return webhook


@router.get("", response_model=list[WebhookRead])
def list_webhooks(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return webhook_service.list_webhooks(db)


@router.post(
    "",
    response_model=WebhookCreated,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_webhook(
    data: WebhookCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """
    Register a webhook endpoint.

    The signing secret is generated when omitted and is only returned here.
    """
    try:
        webhook = webhook_service.create_webhook(db, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("Webhook created", extra=build_log_context(user_id=session.user_id, webhook_id=webhook.id))
    return webhook


@router.get("/{webhook_id}", response_model=WebhookRead)
def get_webhook(
    webhook_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return _get_or_404(db, webhook_id)


@router.patch(
    "/{webhook_id}",
    response_model=WebhookRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_webhook(
    webhook_id: UUID,
    data: WebhookUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    webhook = _get_or_404(db, webhook_id)
    try:
        return webhook_service.update_webhook(db, webhook, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete(
    "/{webhook_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_webhook(
    webhook_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    webhook = _get_or_404(db, webhook_id)
    webhook_service.delete_webhook(db, webhook)
    return Response(status_code=204)


@router.post(
    "/{webhook_id}/test",
    response_model=WebhookDeliveryResult,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(WEBHOOK_LIMIT)
async def test_webhook(
    request: Request,
    webhook_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """Send a signed sample payload to the endpoint and report the result."""
    webhook = _get_or_404(db, webhook_id)
    return await webhook_service.send_test(db, webhook)
