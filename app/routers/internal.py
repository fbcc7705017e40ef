"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from external cron (Render/Railway/GH Actions).
"""

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.services import notification_service, sla_service

router = APIRouter(tags=["internal"])
logger = logging.getLogger(__name__)


def verify_internal_secret(x_internal_secret: str | None = Header(None)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not x_internal_secret or not hmac.compare_digest(x_internal_secret, expected):
        raise HTTPException(status_code=403, detail="Invalid internal secret")


async def _process_outbox(db: Session, limit: int | None) -> dict:
    stats = await notification_service.process_outbox(db, limit=limit)
    return {"success": True, **stats}


@router.post("/process-outbox", dependencies=[Depends(verify_internal_secret)])
async def process_outbox(
    limit: int | None = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """
    Deliver pending Line/webhook notifications.

    Safe to call repeatedly; each call makes one pass over pending rows.
    """
    return await _process_outbox(db, limit)


@router.get("/process-outbox", dependencies=[Depends(verify_internal_secret)])
async def process_outbox_get(
    limit: int | None = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """GET alias for cron services that only issue GET requests."""
    return await _process_outbox(db, limit)


@router.post("/check-sla", dependencies=[Depends(verify_internal_secret)])
def check_sla(db: Session = Depends(get_db)):
    """Warn on cases about to breach SLA and flag cases that already have."""
    return sla_service.check_sla(db)


@router.get("/check-sla", dependencies=[Depends(verify_internal_secret)])
def check_sla_get(db: Session = Depends(get_db)):
    return sla_service.check_sla(db)
