"""API tests for events, tables, quotes and the catalog."""

from __future__ import annotations

from decimal import Decimal

import pytest

pytestmark = pytest.mark.asyncio


async def test_event_listing_hides_drafts_from_guests(app_context) -> None:
    client = app_context["client"]
    guest = await client.get(
        "/api/v1/events",
        params={"include_unpublished": "true"},
        headers=app_context["customer_headers"],
    )
    assert [event["title"] for event in guest.json()] == ["Saturday Night"]

    admin = await client.get(
        "/api/v1/events",
        params={"include_unpublished": "true"},
        headers=app_context["admin_headers"],
    )
    assert [event["title"] for event in admin.json()] == ["Saturday Night", "Draft Night"]


async def test_event_detail_includes_tables(app_context) -> None:
    response = await app_context["client"].get(
        f"/api/v1/events/{app_context['event_id']}",
        headers=app_context["customer_headers"],
    )
    assert response.status_code == 200
    tables = response.json()["tables"]
    assert [table["number"] for table in tables] == [1, 2, 3, 4]
    assert all(table["reserved"] is False for table in tables)


async def test_admin_manages_events_and_tables(app_context) -> None:
    client = app_context["client"]
    headers = app_context["admin_headers"]

    created = await client.post(
        "/api/v1/events",
        json={"title": "Friday Late", "starts_at": "2030-01-04T22:00:00Z"},
        headers=headers,
    )
    assert created.status_code == 201
    event_id = created.json()["id"]

    forbidden = await client.post(
        "/api/v1/events",
        json={"title": "Nope", "starts_at": "2030-01-04T22:00:00Z"},
        headers=app_context["customer_headers"],
    )
    assert forbidden.status_code == 403

    table = await client.post(
        f"/api/v1/events/{event_id}/tables",
        json={"number": 7, "capacity": 8, "price": "300.00", "location": "left"},
        headers=headers,
    )
    assert table.status_code == 201
    table_id = table.json()["id"]

    duplicate = await client.post(
        f"/api/v1/events/{event_id}/tables",
        json={"number": 7, "capacity": 4, "price": "100.00"},
        headers=headers,
    )
    assert duplicate.status_code == 400

    patched = await client.patch(
        f"/api/v1/events/{event_id}/tables/{table_id}",
        json={"price": "320.00", "minimum_bottles": 1},
        headers=headers,
    )
    assert patched.status_code == 200
    assert Decimal(patched.json()["price"]) == Decimal("320.00")
    assert patched.json()["minimum_bottles"] == 1

    renamed = await client.patch(
        f"/api/v1/events/{event_id}", json={"title": "Friday Later"}, headers=headers
    )
    assert renamed.json()["title"] == "Friday Later"

    removed = await client.delete(
        f"/api/v1/events/{event_id}/tables/{table_id}", headers=headers
    )
    assert removed.status_code == 204
    deleted = await client.delete(f"/api/v1/events/{event_id}", headers=headers)
    assert deleted.status_code == 204
    missing = await client.get(f"/api/v1/events/{event_id}", headers=headers)
    assert missing.status_code == 404


async def test_booked_event_and_table_cannot_be_deleted(book_table, app_context) -> None:
    await book_table()
    client = app_context["client"]
    headers = app_context["admin_headers"]
    table = await client.delete(
        f"/api/v1/events/{app_context['event_id']}/tables/{app_context['t1_id']}",
        headers=headers,
    )
    assert table.status_code == 400
    event = await client.delete(f"/api/v1/events/{app_context['event_id']}", headers=headers)
    assert event.status_code == 400


async def test_quote_returns_charge_and_legacy_estimate(app_context) -> None:
    response = await app_context["client"].get(
        f"/api/v1/events/{app_context['event_id']}/tables/{app_context['t1_id']}/quote",
        params=[
            ("bottle_ids", str(app_context["vodka_id"])),
            ("bottle_ids", str(app_context["champagne_id"])),
            ("mixer_ids", str(app_context["cranberry_id"])),
        ],
        headers=app_context["customer_headers"],
    )
    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["breakdown"]["total"]) == Decimal("460.26")
    assert Decimal(body["breakdown"]["bottle_gratuity"]) == Decimal("27.00")
    assert Decimal(body["legacy_estimate"]["total"]) == Decimal("462.00")
    assert body["minimum_bottles_met"] is True


async def test_quote_reports_unmet_minimum(app_context) -> None:
    response = await app_context["client"].get(
        f"/api/v1/events/{app_context['event_id']}/tables/{app_context['t4_id']}/quote",
        headers=app_context["customer_headers"],
    )
    assert response.status_code == 200
    assert response.json()["minimum_bottles"] == 2
    assert response.json()["minimum_bottles_met"] is False


async def test_tables_by_capacity(book_table, app_context) -> None:
    await book_table(table_key="t2_id")
    response = await app_context["client"].get(
        "/api/v1/tables/capacity/5",
        params={"event_id": str(app_context["event_id"])},
        headers=app_context["customer_headers"],
    )
    assert response.status_code == 200
    assert [table["number"] for table in response.json()] == [1, 4]


async def test_catalog_management(app_context) -> None:
    client = app_context["client"]
    headers = app_context["admin_headers"]

    bottles = await client.get(
        "/api/v1/catalog", params={"kind": "bottle"}, headers=app_context["customer_headers"]
    )
    assert [item["name"] for item in bottles.json()] == ["Champagne", "Vodka"]

    created = await client.post(
        "/api/v1/catalog",
        json={"kind": "mixer", "name": "Ginger Beer", "price": "12.00"},
        headers=headers,
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    updated = await client.patch(
        f"/api/v1/catalog/{item_id}", json={"price": "14.00"}, headers=headers
    )
    assert Decimal(updated.json()["price"]) == Decimal("14.00")

    retired = await client.delete(f"/api/v1/catalog/{item_id}", headers=headers)
    assert retired.status_code == 204
    mixers = await client.get(
        "/api/v1/catalog", params={"kind": "mixer"}, headers=headers
    )
    assert [item["name"] for item in mixers.json()] == ["Cranberry"]
    everything = await client.get(
        "/api/v1/catalog", params={"include_inactive": "true"}, headers=headers
    )
    assert "Ginger Beer" in [item["name"] for item in everything.json()]


async def test_user_administration(app_context) -> None:
    client = app_context["client"]
    me = await client.get("/api/v1/users/me", headers=app_context["staff_headers"])
    assert me.json()["role"] == "staff"

    staff_only = await client.get(
        "/api/v1/users", params={"role": "staff"}, headers=app_context["admin_headers"]
    )
    assert [user["email"] for user in staff_only.json()] == ["door@example.com"]

    promoted = await client.patch(
        f"/api/v1/users/{app_context['other_id']}/role",
        json={"role": "staff"},
        headers=app_context["admin_headers"],
    )
    assert promoted.json()["role"] == "staff"

    denied = await client.get("/api/v1/users", headers=app_context["staff_headers"])
    assert denied.status_code == 403
