"""
Notifications router - Line channels, message templates, and test sends.

Reads are open to managers; changes are admin only.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin, require_csrf_header, require_manager
from app.schemas.auth import UserSession
from app.schemas.notification import (
    LineChannelCreate,
    LineChannelRead,
    LineChannelUpdate,
    NotificationSendResult,
    NotificationTestRequest,
    TemplateCreate,
    TemplateRead,
    TemplateUpdate,
)
from app.services import line_service

router = APIRouter()


# =============================================================================
# Line channels
# =============================================================================

def _get_channel_or_404(db: Session, channel_id: UUID):
    channel = line_service.get_channel(db, channel_id)
    if not channel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return channel


@router.get("/channels", response_model=list[LineChannelRead])
def list_channels(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    """Channels with access tokens masked."""
    return [LineChannelRead.from_model(c) for c in line_service.list_channels(db)]


@router.post(
    "/channels",
    response_model=LineChannelRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_channel(
    data: LineChannelCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return LineChannelRead.from_model(line_service.create_channel(db, data))


@router.patch(
    "/channels/{channel_id}",
    response_model=LineChannelRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_channel(
    channel_id: UUID,
    data: LineChannelUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    channel = _get_channel_or_404(db, channel_id)
    return LineChannelRead.from_model(line_service.update_channel(db, channel, data))


@router.delete(
    "/channels/{channel_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_channel(
    channel_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    line_service.delete_channel(db, _get_channel_or_404(db, channel_id))
    return Response(status_code=204)


# =============================================================================
# Templates
# =============================================================================

def _get_template_or_404(db: Session, template_id: UUID):
    template = line_service.get_template(db, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.get("/templates", response_model=list[TemplateRead])
def list_templates(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_manager),
):
    return line_service.list_templates(db)


@router.post(
    "/templates",
    response_model=TemplateRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_template(
    data: TemplateCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    return line_service.create_template(db, data)


@router.patch(
    "/templates/{template_id}",
    response_model=TemplateRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    template = _get_template_or_404(db, template_id)
    return line_service.update_template(db, template, data)


@router.delete(
    "/templates/{template_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_template(
    template_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    line_service.delete_template(db, _get_template_or_404(db, template_id))
    return Response(status_code=204)


# =============================================================================
# Test send
# =============================================================================

@router.post(
    "/test",
    response_model=NotificationSendResult,
    dependencies=[Depends(require_csrf_header)],
)
async def send_test_notification(
    data: NotificationTestRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_admin),
):
    """Render the event's template with the given payload and push it now."""
    return await line_service.send_notification(db, data.event, data.payload)
