"""Attachment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.schemas.user import UserSummary


class AttachmentRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    case_id: UUID
    file_name: str
    file_size: int
    file_type: str
    checksum_sha256: str
    uploaded_by: UserSummary | None = None
    created_at: datetime


class AttachmentDownloadResponse(BaseModel):
    download_url: str
    file_name: str
