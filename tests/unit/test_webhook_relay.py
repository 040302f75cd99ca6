# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any

import httpx
import pytest

import relay.webhook as webhook_mod
from relay.payload import RelayPayload
from relay.webhook import WebhookRelay

URL = "https://hooks.example.test/inbound"


@pytest.fixture(autouse=True)
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(webhook_mod, "log_event", emitted.append)
    return emitted


def _payload(body: str = "hello") -> RelayPayload:
    return RelayPayload(sender="15550001111@c.us", body=body, timestamp=1_700_000_000)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------

@pytest.mark.parametrize("url", [None, "", "YOUR_N8N_WEBHOOK_URL"])
def test_unset_or_placeholder_url_disables_relay(url):
    calls: list[httpx.Request] = []

    async def scenario():
        relay = WebhookRelay(url=url, client=_client(lambda r: calls.append(r) or httpx.Response(200)))
        assert relay.is_configured() is False

        relay.relay(_payload())
        assert relay.in_flight() == 0
        await relay.drain()
        await relay.aclose()

    asyncio.run(scenario())
    assert calls == []


def test_real_url_is_configured():
    assert WebhookRelay(url=URL).is_configured() is True


# ---------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------

def test_posts_json_payload(captured_logs):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler))
        relay.relay(_payload("ping"))
        await relay.drain()
        await relay.aclose()

    asyncio.run(scenario())

    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == URL
    assert seen[0].headers["content-type"] == "application/json"
    assert json.loads(seen[0].content) == {
        "from": "15550001111@c.us",
        "body": "ping",
        "timestamp": 1_700_000_000,
        "type": "chat",
    }
    assert [e["event_type"] for e in captured_logs] == ["WEBHOOK_RELAY_DELIVERED"]


def test_non_2xx_is_logged_and_not_retried(captured_logs):
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler))
        relay.relay(_payload())
        await relay.drain()
        await relay.aclose()

    asyncio.run(scenario())

    assert len(calls) == 1
    failures = [e for e in captured_logs if e["event_type"] == "WEBHOOK_RELAY_FAILED"]
    assert len(failures) == 1
    assert failures[0]["reason"] == "HTTP 503"


def test_network_error_is_swallowed(captured_logs):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler))
        relay.relay(_payload())
        await relay.drain()
        await relay.aclose()

    asyncio.run(scenario())

    failures = [e for e in captured_logs if e["event_type"] == "WEBHOOK_RELAY_FAILED"]
    assert len(failures) == 1
    assert failures[0]["exception"] == "ConnectError"


def test_relay_returns_before_delivery_completes():
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler))
        relay.relay(_payload())
        await asyncio.sleep(0)

        assert relay.in_flight() == 1
        release.set()
        await relay.drain()
        assert relay.in_flight() == 0
        await relay.aclose()

    asyncio.run(scenario())


def test_concurrency_is_bounded():
    active = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return httpx.Response(200)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler), max_in_flight=2)
        for i in range(6):
            relay.relay(_payload(str(i)))
        await relay.drain()
        await relay.aclose()

    asyncio.run(scenario())
    assert peak == 2


def test_deliveries_may_complete_out_of_order():
    # Ordering between relays is not guaranteed; only the set of
    # delivered messages is.
    delivered: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)["body"]
        await asyncio.sleep(0.02 if body == "first" else 0)
        delivered.append(body)
        return httpx.Response(200)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler))
        relay.relay(_payload("first"))
        relay.relay(_payload("second"))
        await relay.drain()
        await relay.aclose()

    asyncio.run(scenario())
    assert sorted(delivered) == ["first", "second"]


def test_aclose_cancels_pending_deliveries():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200)

    async def scenario():
        relay = WebhookRelay(url=URL, client=_client(handler))
        relay.relay(_payload())
        await asyncio.sleep(0)
        await relay.aclose()
        assert relay.in_flight() == 0

    asyncio.run(scenario())
