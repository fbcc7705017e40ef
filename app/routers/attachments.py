"""Attachment endpoints for case file uploads and downloads."""

import os
from io import BytesIO
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_session, get_db, require_csrf_header
from app.core.rate_limit import UPLOAD_LIMIT, limiter
from app.schemas.attachment import AttachmentDownloadResponse, AttachmentRead
from app.schemas.auth import UserSession
from app.services import attachment_service, case_service
from app.utils.file_upload import content_length_exceeds_limit, read_upload

router = APIRouter()


def _get_case_or_404(db: Session, case_id: UUID):
    case = case_service.get_case(db, case_id)
    if not case:
        raise HTTPException(status_code=404, detail="Case not found")
    return case


def _get_attachment_or_404(db: Session, attachment_id: UUID):
    attachment = attachment_service.get_attachment(db, attachment_id)
    if not attachment or attachment.case.is_deleted:
        raise HTTPException(status_code=404, detail="Attachment not found")
    return attachment


@router.post(
    "/cases/{case_id}/attachments",
    response_model=AttachmentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(UPLOAD_LIMIT)
async def upload_attachment(
    request: Request,
    case_id: UUID,
    file: Annotated[UploadFile, File()],
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Upload a file to a case (multipart field `file`)."""
    case = _get_case_or_404(db, case_id)

    max_bytes = settings.max_upload_size_bytes
    if content_length_exceeds_limit(request.headers.get("content-length"), max_size_bytes=max_bytes):
        raise HTTPException(status_code=413, detail=f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB} MB limit")
    content = await read_upload(file, max_size_bytes=max_bytes)
    if content is None:
        raise HTTPException(status_code=413, detail=f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB} MB limit")

    try:
        attachment = attachment_service.upload_attachment(
            db=db,
            case=case,
            user_id=session.user_id,
            filename=file.filename or "untitled",
            content_type=file.content_type or "application/octet-stream",
            file=BytesIO(content),
            file_size=len(content),
        )
    except attachment_service.FileTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return attachment


@router.get("/cases/{case_id}/attachments", response_model=list[AttachmentRead])
def list_attachments(
    case_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Attachments for a case, newest first."""
    case = _get_case_or_404(db, case_id)
    return attachment_service.list_attachments(db, case.id)


@router.get("/attachments/{attachment_id}/download")
def download_attachment(
    attachment_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Signed S3 URL, or the file itself for local storage."""
    attachment = _get_attachment_or_404(db, attachment_id)

    url = attachment_service.generate_signed_url(attachment.storage_key, attachment.file_name)
    if url:
        return AttachmentDownloadResponse(download_url=url, file_name=attachment.file_name)

    try:
        path = attachment_service.local_file_path(attachment.storage_key)
    except ValueError:
        raise HTTPException(status_code=404, detail="File not found")
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type=attachment.file_type, filename=attachment.file_name)


@router.delete(
    "/attachments/{attachment_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_attachment(
    attachment_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    attachment = _get_attachment_or_404(db, attachment_id)
    attachment_service.delete_attachment(db, attachment, session.user_id)
    return Response(status_code=204)
