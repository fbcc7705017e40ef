"""Helpers for bounded multipart uploads."""

from __future__ import annotations

from fastapi import UploadFile

MULTIPART_OVERHEAD_BYTES = 64 * 1024
READ_CHUNK_BYTES = 1024 * 1024


def content_length_exceeds_limit(content_length_header: str | None, *, max_size_bytes: int) -> bool:
    """Reject early when the declared body cannot fit under the limit plus multipart framing."""
    if not (content_length_header or "").isdigit():
        return False
    return int(content_length_header) > max_size_bytes + MULTIPART_OVERHEAD_BYTES


async def read_upload(file: UploadFile, *, max_size_bytes: int) -> bytes | None:
    """
    Read an upload in chunks.

    Returns None as soon as more than max_size_bytes has been read.
    """
    chunks: list[bytes] = []
    size = 0
    while True:
        chunk = await file.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        size += len(chunk)
        if size > max_size_bytes:
            return None
        chunks.append(chunk)
    return b"".join(chunks)
