"""Schemas for push notification endpoints."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field


class PushTokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)


class PushSendRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    user_ids: list[uuid.UUID] | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class PushSendResponse(BaseModel):
    """Number of devices the message was queued for."""

    queued: int
