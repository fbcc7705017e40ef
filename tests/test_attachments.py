"""Tests for case attachments on local storage."""
import hashlib
from io import BytesIO

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.db.models import Attachment, Case, CaseActivity
from app.services import attachment_service

PDF_BYTES = b"%PDF-1.4 test document"


@pytest.fixture
async def case_id(support_client: AsyncClient, case_type) -> str:
    response = await support_client.post(
        "/cases", json={"title": "Refund screenshot", "case_type_id": str(case_type.id)}
    )
    assert response.status_code == 201
    return response.json()["id"]


async def _upload(client: AsyncClient, case_id: str, name="receipt.pdf", content=PDF_BYTES, mime="application/pdf"):
    return await client.post(
        f"/cases/{case_id}/attachments",
        files={"file": (name, content, mime)},
    )


@pytest.mark.asyncio
async def test_upload_stores_file_and_logs_activity(support_client: AsyncClient, case_id, storage_path, support_user, db):
    response = await _upload(support_client, case_id)
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["file_name"] == "receipt.pdf"
    assert data["file_size"] == len(PDF_BYTES)
    assert data["checksum_sha256"] == hashlib.sha256(PDF_BYTES).hexdigest()
    assert data["uploaded_by"]["id"] == str(support_user.id)

    attachment = db.query(Attachment).one()
    stored = storage_path / attachment.storage_key
    assert stored.read_bytes() == PDF_BYTES
    assert attachment.storage_key.startswith(f"cases/{case_id}/")

    activity = db.query(CaseActivity).filter(CaseActivity.type == "FILE_ATTACHED").one()
    assert activity.title == "File attached"


@pytest.mark.asyncio
async def test_list_attachments(support_client: AsyncClient, case_id, storage_path):
    await _upload(support_client, case_id, name="a.png", content=b"\x89PNG", mime="image/png")
    await _upload(support_client, case_id, name="b.txt", content=b"notes", mime="text/plain")

    response = await support_client.get(f"/cases/{case_id}/attachments")
    assert response.status_code == 200
    assert [a["file_name"] for a in response.json()] == ["b.txt", "a.png"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name,mime,content,detail",
    [
        ("run.exe", "application/octet-stream", b"MZ", "File extension '.exe' not allowed"),
        ("notes.txt", "application/x-msdownload", b"x", "Content type 'application/x-msdownload' not allowed"),
        ("empty.pdf", "application/pdf", b"", "File is empty"),
    ],
)
async def test_upload_rejects_invalid_files(support_client: AsyncClient, case_id, storage_path, name, mime, content, detail):
    response = await _upload(support_client, case_id, name=name, content=content, mime=mime)
    assert response.status_code == 400
    assert response.json()["detail"] == detail


@pytest.mark.asyncio
async def test_upload_too_large(support_client: AsyncClient, case_id, storage_path, monkeypatch, db):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 1)
    content = b"x" * (settings.max_upload_size_bytes + 1)
    response = await _upload(support_client, case_id, name="big.txt", content=content, mime="text/plain")
    assert response.status_code == 413
    assert db.query(Attachment).count() == 0


@pytest.mark.asyncio
async def test_upload_to_missing_case(support_client: AsyncClient, storage_path):
    response = await _upload(support_client, "00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_download_local_file(support_client: AsyncClient, case_id, storage_path):
    attachment = (await _upload(support_client, case_id)).json()

    response = await support_client.get(f"/attachments/{attachment['id']}/download")
    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert "receipt.pdf" in response.headers["content-disposition"]


@pytest.mark.asyncio
async def test_download_signed_url_for_s3(support_client: AsyncClient, case_id, storage_path, monkeypatch):
    attachment = (await _upload(support_client, case_id)).json()
    monkeypatch.setattr(
        attachment_service,
        "generate_signed_url",
        lambda key, filename=None: f"https://s3.example.com/{key}?sig=abc",
    )

    response = await support_client.get(f"/attachments/{attachment['id']}/download")
    assert response.status_code == 200
    data = response.json()
    assert data["file_name"] == "receipt.pdf"
    assert data["download_url"].startswith("https://s3.example.com/cases/")


@pytest.mark.asyncio
async def test_download_missing_file_is_404(support_client: AsyncClient, case_id, storage_path, db):
    attachment = (await _upload(support_client, case_id)).json()
    (storage_path / db.query(Attachment).one().storage_key).unlink()

    response = await support_client.get(f"/attachments/{attachment['id']}/download")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_attachment(support_client: AsyncClient, case_id, storage_path, db):
    attachment = (await _upload(support_client, case_id)).json()
    storage_key = db.query(Attachment).one().storage_key

    response = await support_client.delete(f"/attachments/{attachment['id']}")
    assert response.status_code == 204
    assert db.query(Attachment).count() == 0
    assert not (storage_path / storage_key).exists()
    assert db.query(CaseActivity).filter(CaseActivity.title == "Attachment removed").count() == 1


def test_local_file_path_rejects_traversal(storage_path):
    with pytest.raises(ValueError):
        attachment_service.local_file_path("../../etc/passwd")


@pytest.fixture
def stored_case(db, case_type) -> Case:
    case = Case(case_number="CASE-2026-0100", title="Attachment storage", case_type_id=case_type.id)
    db.add(case)
    db.commit()
    db.refresh(case)
    return case


def test_failed_commit_removes_stored_file(db, stored_case, storage_path, monkeypatch):
    def fail_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", fail_commit)
    with pytest.raises(OperationalError):
        attachment_service.upload_attachment(
            db, stored_case, None, "receipt.pdf", "application/pdf", BytesIO(PDF_BYTES), len(PDF_BYTES)
        )

    assert [p for p in storage_path.rglob("*") if p.is_file()] == []


def test_stored_object_removed_after_row(db, stored_case, storage_path, monkeypatch):
    attachment = attachment_service.upload_attachment(
        db, stored_case, None, "receipt.pdf", "application/pdf", BytesIO(PDF_BYTES), len(PDF_BYTES)
    )
    rows_at_delete = []

    def unreachable_storage(storage_key):
        rows_at_delete.append(db.query(Attachment).count())
        raise OSError("storage offline")

    monkeypatch.setattr(attachment_service, "delete_file", unreachable_storage)
    attachment_service.delete_attachment(db, attachment, None)

    assert rows_at_delete == [0]
    assert db.query(Attachment).count() == 0
