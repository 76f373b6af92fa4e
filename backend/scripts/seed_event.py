"""Seed a demo event with tables, a bottle/mixer catalog and an admin user."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select

from tableside.db.session import get_sessionmaker
from tableside.models import (
    CatalogItem,
    CatalogItemKind,
    Event,
    TableLocation,
    User,
    UserRole,
    UserStatus,
    VenueTable,
)

ADMIN_EMAIL = "admin@tableside.local"
EVENT_TITLE = "Seed Saturday"

TABLES = [
    (1, 6, Decimal("250.00"), TableLocation.LEFT, 1),
    (2, 6, Decimal("250.00"), TableLocation.LEFT, 1),
    (3, 8, Decimal("400.00"), TableLocation.CENTER, 2),
    (4, 10, Decimal("600.00"), TableLocation.CENTER, 2),
    (5, 4, Decimal("150.00"), TableLocation.RIGHT, 0),
]

CATALOG = [
    (CatalogItemKind.BOTTLE, "Grey Goose", Decimal("100.00")),
    (CatalogItemKind.BOTTLE, "Don Julio 1942", Decimal("250.00")),
    (CatalogItemKind.BOTTLE, "Moet Imperial", Decimal("50.00")),
    (CatalogItemKind.MIXER, "Cranberry", Decimal("20.00")),
    (CatalogItemKind.MIXER, "Red Bull", Decimal("15.00")),
]


def _next_saturday(today: datetime | None = None) -> datetime:
    today = today or datetime.now(UTC)
    days_ahead = (5 - today.weekday()) % 7 or 7
    target = today + timedelta(days=days_ahead)
    return target.replace(hour=22, minute=0, second=0, microsecond=0)


async def seed_event() -> None:
    sessionmaker = get_sessionmaker()
    async with sessionmaker() as session:
        admin = (
            await session.execute(select(User).where(User.email == ADMIN_EMAIL))
        ).scalar_one_or_none()
        if admin is None:
            admin = User(
                email=ADMIN_EMAIL,
                display_name="Seed Admin",
                role=UserRole.ADMIN,
                status=UserStatus.ACTIVE,
            )
            session.add(admin)
            print(f"Created admin {ADMIN_EMAIL}")

        existing_items = {
            item.name
            for item in (await session.execute(select(CatalogItem))).scalars().all()
        }
        items_created = 0
        for kind, name, price in CATALOG:
            if name in existing_items:
                continue
            session.add(CatalogItem(kind=kind, name=name, price=price))
            items_created += 1

        event = (
            await session.execute(select(Event).where(Event.title == EVENT_TITLE))
        ).scalar_one_or_none()
        if event is None:
            event = Event(title=EVENT_TITLE, starts_at=_next_saturday(), is_published=True)
            session.add(event)
            await session.flush()
            for number, capacity, price, location, minimum in TABLES:
                session.add(
                    VenueTable(
                        event_id=event.id,
                        number=number,
                        capacity=capacity,
                        price=price,
                        location=location,
                        minimum_bottles=minimum,
                    )
                )
            print(f"Created event {EVENT_TITLE} ({event.id}) with {len(TABLES)} tables")
        else:
            print(f"Event {EVENT_TITLE} already exists ({event.id})")

        await session.commit()
        print(f"Catalog items created: {items_created}")
        print(f"Admin user id: {admin.id}")


if __name__ == "__main__":
    asyncio.run(seed_event())
