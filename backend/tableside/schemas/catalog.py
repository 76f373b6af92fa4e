"""Schemas for bottle and mixer catalog items."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tableside.models.catalog import CatalogItemKind


class CatalogItemBase(BaseModel):
    kind: CatalogItemKind = CatalogItemKind.BOTTLE
    name: str = Field(min_length=1, max_length=200)
    price: Decimal = Field(ge=0)
    description: str | None = None
    image_url: str | None = None
    active: bool = True


class CatalogItemCreate(CatalogItemBase):
    pass


class CatalogItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    price: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    image_url: str | None = None
    active: bool | None = None


class CatalogItemRead(CatalogItemBase):
    id: uuid.UUID

    model_config = ConfigDict(from_attributes=True)
