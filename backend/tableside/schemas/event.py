"""Schemas for events and their tables."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tableside.models.event import TableLocation


class EventBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    starts_at: datetime
    description: str | None = None
    flyer_url: str | None = None
    is_published: bool = True


class EventCreate(EventBase):
    pass


class EventUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    starts_at: datetime | None = None
    description: str | None = None
    flyer_url: str | None = None
    is_published: bool | None = None


class EventRead(EventBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TableBase(BaseModel):
    number: int = Field(ge=1)
    capacity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    location: TableLocation = TableLocation.CENTER
    minimum_bottles: int = Field(default=0, ge=0)


class TableCreate(TableBase):
    pass


class TableUpdate(BaseModel):
    number: int | None = Field(default=None, ge=1)
    capacity: int | None = Field(default=None, ge=1)
    price: Decimal | None = Field(default=None, ge=0)
    location: TableLocation | None = None
    minimum_bottles: int | None = Field(default=None, ge=0)


class TableRead(TableBase):
    id: uuid.UUID
    event_id: uuid.UUID
    reserved: bool
    reservation_id: uuid.UUID | None = None

    model_config = ConfigDict(from_attributes=True)


class EventDetail(EventRead):
    tables: list[TableRead] = Field(default_factory=list)
