"""Bottle and mixer catalog."""
from __future__ import annotations

import enum
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Enum, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tableside.db.base import Base
from tableside.models.mixins import TimestampMixin


class CatalogItemKind(str, enum.Enum):
    BOTTLE = "bottle"
    MIXER = "mixer"


class CatalogItem(TimestampMixin, Base):
    """Something a guest can add to a table reservation."""

    __tablename__ = "catalog_items"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    kind: Mapped[CatalogItemKind] = mapped_column(Enum(CatalogItemKind), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    image_url: Mapped[str | None] = mapped_column(String(1024))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def as_line_item(self) -> dict[str, str]:
        """Snapshot stored on a reservation."""
        return {"id": str(self.id), "name": self.name, "price": f"{self.price:.2f}"}
