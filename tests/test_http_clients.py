"""Tests for HTTP-based adapters."""

import asyncio
import json
from uuid import uuid4

import httpx

from studio_sessions.adapters.webhook_notification_dispatcher import (
    HttpxNotificationDispatcher,
)
from studio_sessions.domain.notifications import NotificationIntent


def _intent() -> NotificationIntent:
    return NotificationIntent(
        event="session.confirmed",
        session_id=uuid4(),
        recipients=(uuid4(),),
        payload={"from_status": "Pre-scheduled", "to_status": "Confirmed"},
    )


def test_webhook_dispatcher_posts_intent() -> None:
    received: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == httpx.URL("https://hooks.example.com/sessions")
        received.append(json.loads(request.content))
        return httpx.Response(204)

    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = HttpxNotificationDispatcher(
        webhook_url="https://hooks.example.com/sessions", http_client=async_client
    )
    intent = _intent()

    asyncio.run(dispatcher.send(intent))

    assert len(received) == 1
    assert received[0]["event"] == "session.confirmed"
    assert received[0]["session_id"] == str(intent.session_id)
    assert received[0]["recipients"] == [str(intent.recipients[0])]


def test_webhook_dispatcher_retries_then_succeeds() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] < 3:
            return httpx.Response(503)
        return httpx.Response(200)

    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = HttpxNotificationDispatcher(
        webhook_url="https://hooks.example.com/sessions", http_client=async_client
    )

    asyncio.run(dispatcher.send(_intent()))

    assert calls["count"] == 3


def test_webhook_dispatcher_drops_after_max_attempts() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = HttpxNotificationDispatcher(
        webhook_url="https://hooks.example.com/sessions",
        http_client=async_client,
        max_attempts=2,
    )

    asyncio.run(dispatcher.send(_intent()))

    assert calls["count"] == 2


def test_webhook_dispatcher_close() -> None:
    async_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: None))
    dispatcher = HttpxNotificationDispatcher(
        webhook_url="https://hooks.example.com/sessions", http_client=async_client
    )

    asyncio.run(dispatcher.close())

    assert async_client.is_closed
