"""Outbound webhook schemas."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.db.enums import WebhookEvent

HEADER_NAME_RE = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")


def check_custom_headers(headers: dict[str, str] | None) -> dict[str, str] | None:
    """Header names must be HTTP tokens and values printable ASCII."""
    for name, value in (headers or {}).items():
        if not HEADER_NAME_RE.match(name):
            raise ValueError(f"Invalid header name '{name}'")
        if not value.isascii() or not value.isprintable():
            raise ValueError(f"Header '{name}' must be printable ASCII")
    return headers


class WebhookCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    url: str = Field(..., min_length=8, max_length=2000)
    secret: str | None = Field(None, min_length=16, max_length=255)
    events: list[WebhookEvent] = Field(..., min_length=1)
    description: str | None = Field(None, max_length=500)
    headers: dict[str, str] | None = None
    is_active: bool = True
    retry_count: int = Field(3, ge=0, le=10)
    timeout_ms: int = Field(10000, ge=1000, le=60000)

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        return check_custom_headers(v)


class WebhookUpdate(BaseModel):
    """Partial update. The signing secret cannot be changed here."""
    name: str | None = Field(None, min_length=2, max_length=100)
    url: str | None = Field(None, min_length=8, max_length=2000)
    events: list[WebhookEvent] | None = Field(None, min_length=1)
    description: str | None = Field(None, max_length=500)
    headers: dict[str, str] | None = None
    is_active: bool | None = None
    retry_count: int | None = Field(None, ge=0, le=10)
    timeout_ms: int | None = Field(None, ge=1000, le=60000)

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        return check_custom_headers(v)


class WebhookRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    url: str
    events: list[str]
    description: str | None
    headers: dict[str, str] | None
    is_active: bool
    retry_count: int
    timeout_ms: int
    last_success_at: datetime | None
    last_failure_at: datetime | None
    failure_count: int
    created_at: datetime


class WebhookCreated(WebhookRead):
    """Returned once on creation so the caller can store the secret."""
    secret: str


class WebhookDeliveryResult(BaseModel):
    success: bool
    status_code: int | None = None
    error: str | None = None
