"""Case attachments: validation, local/S3 storage, and timeline entries."""

import hashlib
import logging
import os
import uuid
from functools import lru_cache
from typing import BinaryIO

import boto3
from botocore.exceptions import ClientError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.enums import ActivityType
from app.db.models import Attachment, Case
from app.services import activity_service

logger = logging.getLogger(__name__)

# Extension -> accepted MIME types
ALLOWED_TYPES: dict[str, set[str]] = {
    "pdf": {"application/pdf"},
    "png": {"image/png"},
    "jpg": {"image/jpeg"},
    "jpeg": {"image/jpeg"},
    "gif": {"image/gif"},
    "webp": {"image/webp"},
    "doc": {"application/msword"},
    "docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"},
    "xls": {"application/vnd.ms-excel"},
    "xlsx": {"application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"},
    "csv": {"text/csv", "application/vnd.ms-excel"},
    "txt": {"text/plain"},
}
ALLOWED_MIME_TYPES = set().union(*ALLOWED_TYPES.values())
DOWNLOAD_URL_TTL_SECONDS = 300


class FileTooLargeError(ValueError):
    """Upload exceeds MAX_UPLOAD_SIZE_MB."""


# =============================================================================
# Storage
# =============================================================================

@lru_cache(maxsize=1)
def _s3():
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=settings.S3_ENDPOINT_URL.rstrip("/") or None,
    )


def _uses_s3() -> bool:
    return settings.STORAGE_BACKEND == "s3"


def local_file_path(storage_key: str) -> str:
    """Absolute path under LOCAL_STORAGE_PATH; rejects keys that escape it."""
    root = os.path.realpath(settings.LOCAL_STORAGE_PATH)
    path = os.path.realpath(os.path.join(root, storage_key))
    if not path.startswith(root + os.sep):
        raise ValueError("Invalid storage key")
    return path


def store_file(storage_key: str, file: BinaryIO, content_type: str) -> None:
    file.seek(0)
    if _uses_s3():
        _s3().upload_fileobj(file, settings.S3_BUCKET, storage_key, ExtraArgs={"ContentType": content_type})
        return

    path = local_file_path(storage_key)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as out:
        out.write(file.read())


def delete_file(storage_key: str) -> None:
    if _uses_s3():
        _s3().delete_object(Bucket=settings.S3_BUCKET, Key=storage_key)
        return
    path = local_file_path(storage_key)
    if os.path.exists(path):
        os.remove(path)


def generate_signed_url(storage_key: str, filename: str | None = None) -> str | None:
    """Short-lived S3 download URL. None on local storage or presign failure."""
    if not _uses_s3():
        return None
    params = {"Bucket": settings.S3_BUCKET, "Key": storage_key}
    if filename:
        params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
    try:
        return _s3().generate_presigned_url("get_object", Params=params, ExpiresIn=DOWNLOAD_URL_TTL_SECONDS)
    except ClientError:
        logger.exception("Could not presign download for %s", storage_key)
        return None


# =============================================================================
# Validation
# =============================================================================

def get_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def sha256_hex(file: BinaryIO) -> str:
    digest = hashlib.sha256()
    file.seek(0)
    for block in iter(lambda: file.read(64 * 1024), b""):
        digest.update(block)
    file.seek(0)
    return digest.hexdigest()


def validate_upload(filename: str, content_type: str, file_size: int) -> None:
    """
    Raises:
        FileTooLargeError: Over MAX_UPLOAD_SIZE_MB
        ValueError: Extension or MIME type not allowed, or empty file
    """
    ext = get_extension(filename)
    if ext not in ALLOWED_TYPES:
        raise ValueError(f"File extension '.{ext}' not allowed")
    if content_type not in ALLOWED_MIME_TYPES:
        raise ValueError(f"Content type '{content_type}' not allowed")
    if file_size <= 0:
        raise ValueError("File is empty")
    if file_size > settings.max_upload_size_bytes:
        raise FileTooLargeError(f"File size exceeds {settings.MAX_UPLOAD_SIZE_MB} MB limit")


# =============================================================================
# Attachments
# =============================================================================

def upload_attachment(
    db: Session,
    case: Case,
    user_id: uuid.UUID | None,
    filename: str,
    content_type: str,
    file: BinaryIO,
    file_size: int,
) -> Attachment:
    """Validate, store under cases/{case_id}/{uuid}.{ext}, record, and log FILE_ATTACHED."""
    validate_upload(filename, content_type, file_size)

    attachment_id = uuid.uuid4()
    storage_key = f"cases/{case.id}/{attachment_id}.{get_extension(filename)}"
    checksum = sha256_hex(file)
    store_file(storage_key, file, content_type)

    attachment = Attachment(
        id=attachment_id,
        case_id=case.id,
        uploaded_by_id=user_id,
        file_name=os.path.basename(filename),
        file_size=file_size,
        file_type=content_type,
        storage_key=storage_key,
        checksum_sha256=checksum,
    )
    db.add(attachment)
    activity_service.log_activity(
        db=db,
        case_id=case.id,
        activity_type=ActivityType.FILE_ATTACHED,
        title="File attached",
        description=attachment.file_name,
        user_id=user_id,
        new_value=attachment.file_name,
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        delete_file(storage_key)
        raise
    db.refresh(attachment)
    logger.info(
        "Attachment stored",
        extra=build_log_context(user_id=user_id, case_id=case.id, case_number=case.case_number),
    )
    return attachment


def list_attachments(db: Session, case_id: uuid.UUID) -> list[Attachment]:
    return (
        db.query(Attachment)
        .filter(Attachment.case_id == case_id)
        .order_by(Attachment.created_at.desc())
        .all()
    )


def get_attachment(db: Session, attachment_id: uuid.UUID) -> Attachment | None:
    return db.query(Attachment).filter(Attachment.id == attachment_id).first()


def delete_attachment(db: Session, attachment: Attachment, user_id: uuid.UUID | None) -> None:
    """Remove the row, then the stored object; note the removal on the case."""
    storage_key = attachment.storage_key
    activity_service.log_activity(
        db=db,
        case_id=attachment.case_id,
        activity_type=ActivityType.FILE_ATTACHED,
        title="Attachment removed",
        description=attachment.file_name,
        user_id=user_id,
        old_value=attachment.file_name,
    )
    db.delete(attachment)
    db.commit()
    try:
        delete_file(storage_key)
    except (OSError, ClientError):
        logger.exception("Attachment row removed but stored object %s was not", storage_key)
