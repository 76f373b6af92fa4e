"""Expo push gateway client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx


class PushClientError(RuntimeError):
    """Raised when the push gateway cannot be reached or rejects a batch."""


@dataclass(slots=True)
class PushMessage:
    """One notification addressed to one device token."""

    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "sound": "default",
        }
        if self.data:
            payload["data"] = self.data
        return payload


class ExpoPushClient:
    """Posts notification batches to the Expo push API."""

    # Expo accepts at most 100 messages per request.
    BATCH_SIZE = 100

    def __init__(
        self,
        endpoint: str,
        *,
        access_token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def send(self, messages: list[PushMessage]) -> list[dict[str, Any]]:
        """Deliver messages and return the gateway's per-message tickets."""

        if not messages:
            return []
        tickets: list[dict[str, Any]] = []
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            for start in range(0, len(messages), self.BATCH_SIZE):
                batch = messages[start : start + self.BATCH_SIZE]
                try:
                    response = await client.post(
                        self._endpoint,
                        json=[message.to_payload() for message in batch],
                        headers=self._headers(),
                    )
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    raise PushClientError(f"Push gateway request failed: {exc}") from exc
                try:
                    body = response.json()
                except ValueError as exc:
                    raise PushClientError("Push gateway returned invalid JSON") from exc
                data = body.get("data") if isinstance(body, dict) else None
                if not isinstance(data, list):
                    raise PushClientError("Push gateway response is missing ticket data")
                tickets.extend(data)
        return tickets
