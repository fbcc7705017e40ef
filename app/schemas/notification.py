"""Line channel, notification template, and test-send schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


def mask_token(token: str) -> str:
    """Show only the last 4 characters of an access token."""
    if len(token) <= 4:
        return "****"
    return f"****{token[-4:]}"


class LineChannelCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    access_token: str = Field(..., min_length=10)
    default_group_id: str | None = Field(None, max_length=100)
    enabled_events: list[str] = Field(default_factory=list)
    is_active: bool = True


class LineChannelUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    access_token: str | None = Field(None, min_length=10)
    default_group_id: str | None = Field(None, max_length=100)
    enabled_events: list[str] | None = None
    is_active: bool | None = None


class LineChannelRead(BaseModel):
    id: UUID
    name: str
    access_token_masked: str
    default_group_id: str | None
    enabled_events: list[str]
    is_active: bool
    created_at: datetime

    @classmethod
    def from_model(cls, channel) -> "LineChannelRead":
        return cls(
            id=channel.id,
            name=channel.name,
            access_token_masked=mask_token(channel.access_token),
            default_group_id=channel.default_group_id,
            enabled_events=list(channel.enabled_events or []),
            is_active=channel.is_active,
            created_at=channel.created_at,
        )


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    event: str = Field(..., min_length=2, max_length=100)
    template: str = Field(..., min_length=10)
    is_active: bool = True


class TemplateUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    event: str | None = Field(None, min_length=2, max_length=100)
    template: str | None = Field(None, min_length=10)
    is_active: bool | None = None


class TemplateRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    name: str
    event: str
    template: str
    is_active: bool
    created_at: datetime


class NotificationTestRequest(BaseModel):
    event: str = Field(..., min_length=2, max_length=100)
    payload: dict[str, Any] = Field(default_factory=dict)


class ChannelSendResult(BaseModel):
    channel_id: UUID
    channel_name: str
    success: bool
    error: str | None = None


class NotificationSendResult(BaseModel):
    success: bool
    sent: int = 0
    total: int = 0
    results: list[ChannelSendResult] = Field(default_factory=list)
    reason: str | None = None
