"""Map database integrity errors to HTTP responses."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)

# Postgres SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def classify_integrity_error(error: IntegrityError) -> str:
    """Return 'unique', 'foreign_key', or 'other' for an IntegrityError."""
    orig = error.orig
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode == UNIQUE_VIOLATION:
        return "unique"
    if pgcode == FOREIGN_KEY_VIOLATION:
        return "foreign_key"

    message = (str(orig) if orig else str(error)).lower()
    if "unique" in message or "duplicate key" in message:
        return "unique"
    if "foreign key" in message:
        return "foreign_key"
    return "other"


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique violation -> 409, foreign key -> 400, anything else -> 400."""
    kind = classify_integrity_error(exc)
    logger.warning(
        "Integrity error on %s %s (%s)", request.method, request.url.path, kind
    )
    if kind == "unique":
        return JSONResponse(status_code=409, content={"detail": "Record already exists"})
    if kind == "foreign_key":
        return JSONResponse(status_code=400, content={"detail": "Related record not found"})
    return JSONResponse(status_code=400, content={"detail": "Invalid data"})
