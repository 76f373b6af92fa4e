"""Push notification registration, delivery and the Expo client."""

from __future__ import annotations

import json
import logging
from decimal import Decimal

import httpx
import pytest
from fastapi import BackgroundTasks

from tableside.db.session import get_sessionmaker
from tableside.integrations import ExpoPushClient, PushClientError, PushMessage
from tableside.models import Reservation, User
from tableside.services import notification_service

pytestmark = pytest.mark.asyncio


async def test_register_push_token(app_context, db_url: str) -> None:
    client = app_context["client"]
    saved = await client.post(
        "/api/v1/notifications/push-token",
        json={"token": "ExpoPushToken[other-device]"},
        headers=app_context["other_headers"],
    )
    assert saved.status_code == 204

    invalid = await client.post(
        "/api/v1/notifications/push-token",
        json={"token": "not-a-device"},
        headers=app_context["other_headers"],
    )
    assert invalid.status_code == 400

    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        user = await session.get(User, app_context["other_id"])
        assert user is not None
        assert user.push_token == "ExpoPushToken[other-device]"


async def test_admin_broadcast(app_context) -> None:
    client = app_context["client"]
    await client.post(
        "/api/v1/notifications/push-token",
        json={"token": "ExpoPushToken[other-device]"},
        headers=app_context["other_headers"],
    )
    response = await client.post(
        "/api/v1/notifications/send",
        json={"title": "Doors open", "message": "See you at 10", "data": {"kind": "promo"}},
        headers=app_context["admin_headers"],
    )
    assert response.status_code == 202
    assert response.json() == {"queued": 2}

    [request] = app_context["push_requests"]
    payload = json.loads(request.read())
    assert {message["to"] for message in payload} == {
        "ExponentPushToken[guest-device]",
        "ExpoPushToken[other-device]",
    }
    assert payload[0]["title"] == "Doors open"
    assert payload[0]["data"] == {"kind": "promo"}


async def test_targeted_send_and_permissions(app_context) -> None:
    client = app_context["client"]
    targeted = await client.post(
        "/api/v1/notifications/send",
        json={
            "title": "Your table",
            "message": "Ready",
            "user_ids": [str(app_context["other_id"])],
        },
        headers=app_context["admin_headers"],
    )
    assert targeted.json() == {"queued": 0}
    assert app_context["push_requests"] == []

    denied = await client.post(
        "/api/v1/notifications/send",
        json={"title": "Hi", "message": "there"},
        headers=app_context["staff_headers"],
    )
    assert denied.status_code == 403


async def test_resolve_push_tokens_with_empty_list(venue, db_url: str) -> None:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        assert await notification_service.resolve_push_tokens(session, user_ids=[]) == []
        assert await notification_service.resolve_push_tokens(session) == [
            "ExponentPushToken[guest-device]"
        ]


async def test_client_batches_messages() -> None:
    batches: list[list[dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        batch = json.loads(request.read())
        batches.append(batch)
        assert request.headers["Authorization"] == "Bearer push-token"
        return httpx.Response(200, json={"data": [{"status": "ok"} for _ in batch]})

    client = ExpoPushClient(
        "https://push.test/send",
        access_token="push-token",
        transport=httpx.MockTransport(handler),
    )
    messages = [
        PushMessage(to=f"ExponentPushToken[{i}]", title="t", body="b") for i in range(150)
    ]
    tickets = await client.send(messages)
    assert [len(batch) for batch in batches] == [100, 50]
    assert len(tickets) == 150
    assert "data" not in batches[0][0]


async def test_client_wraps_gateway_errors() -> None:
    client = ExpoPushClient(
        "https://push.test/send",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(PushClientError):
        await client.send([PushMessage(to="ExponentPushToken[x]", title="t", body="b")])


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"<html>gateway</html>"),
        httpx.Response(200, json=[{"status": "ok"}]),
        httpx.Response(200, json={"errors": [{"code": "INTERNAL"}]}),
    ],
)
async def test_client_rejects_malformed_gateway_body(response: httpx.Response) -> None:
    client = ExpoPushClient(
        "https://push.test/send",
        transport=httpx.MockTransport(lambda request: response),
    )
    with pytest.raises(PushClientError):
        await client.send([PushMessage(to="ExponentPushToken[x]", title="t", body="b")])


async def test_malformed_gateway_body_is_logged(caplog) -> None:
    client = ExpoPushClient(
        "https://push.test/send",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=b"not json")
        ),
    )
    tasks = BackgroundTasks()
    notification_service.schedule_push(
        tasks, client, tokens=["ExponentPushToken[x]"], title="t", message="m"
    )
    with caplog.at_level(logging.ERROR, logger="tableside.services.notification_service"):
        await tasks()
    assert "Push delivery failed" in caplog.text


async def test_delivery_failures_are_logged_not_raised(caplog) -> None:
    client = ExpoPushClient(
        "https://push.test/send",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    tasks = BackgroundTasks()
    queued = notification_service.schedule_push(
        tasks,
        client,
        tokens=["ExponentPushToken[x]", None, ""],
        title="t",
        message="m",
    )
    assert queued == 1
    with caplog.at_level(logging.ERROR, logger="tableside.services.notification_service"):
        await tasks()
    assert "Push delivery failed" in caplog.text


async def test_table_change_messages() -> None:
    reservation = Reservation(table_number=5)
    title, message = notification_service.build_table_change_message(
        reservation, status="needs_payment", amount=Decimal("77.18")
    )
    assert title == "Table change payment required"
    assert "$77.18" in message
    _, refund_message = notification_service.build_table_change_message(
        reservation, status="refunded", amount=Decimal("-20")
    )
    assert "$20.00" in refund_message
