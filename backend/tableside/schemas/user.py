"""User-related schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from tableside.models.user import UserRole, UserStatus


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    display_name: str | None = None
    phone_number: str | None = None
    role: UserRole
    status: UserStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRoleUpdate(BaseModel):
    role: UserRole
