"""
Webhook relay.

Forwards inbound messages to an external HTTP consumer.

Contract:
- relay() is fire-and-forget: it schedules delivery and returns at once
- One delivery attempt per message, never retried
- Failures (network error, timeout, non-2xx) are logged, never raised
- Deliveries run concurrently up to max_in_flight; ordering between
  messages is not preserved
- With no target URL (or the placeholder URL) relay() does nothing
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from constants import (
    RELAY_MAX_IN_FLIGHT,
    WEBHOOK_PLACEHOLDER_URL,
    WEBHOOK_TIMEOUT_S,
)
from observability.logger import log_event
from observability.metrics import timed
from relay.payload import RelayPayload


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class WebhookRelay:
    """
    Best-effort HTTP relay with bounded concurrency.

    Design:
    - One asyncio task per relayed message
    - A semaphore caps concurrent POSTs so a hung endpoint cannot pile up
      unbounded connections
    - Every POST carries a timeout so a slot is always released
    """

    def __init__(
        self,
        *,
        url: str | None,
        timeout_s: float = WEBHOOK_TIMEOUT_S,
        max_in_flight: int = RELAY_MAX_IN_FLIGHT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._max_in_flight = max_in_flight
        self._semaphore: asyncio.Semaphore | None = None

        self._owns_client = client is None
        self._client = client

        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        return bool(self._url) and self._url != WEBHOOK_PLACEHOLDER_URL

    def relay(self, payload: RelayPayload) -> None:
        if not self.is_configured():
            return

        task = asyncio.create_task(self._deliver(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def in_flight(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding deliveries and release the HTTP client."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    def _get_semaphore(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the loop that runs deliveries
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_in_flight)
        return self._semaphore

    async def _deliver(self, payload: RelayPayload) -> None:
        assert self._url is not None

        async with self._get_semaphore():
            try:
                with timed("webhook_relay", details={"from": payload.sender}):
                    response = await self._get_client().post(
                        self._url,
                        json=payload.to_json(),
                        timeout=self._timeout_s,
                    )
                    response.raise_for_status()

            except httpx.HTTPStatusError as exc:
                self._report_failure(
                    payload,
                    reason=f"HTTP {exc.response.status_code}",
                    exception=type(exc).__name__,
                )
                return

            except httpx.HTTPError as exc:
                self._report_failure(
                    payload,
                    reason=str(exc) or type(exc).__name__,
                    exception=type(exc).__name__,
                )
                return

            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._report_failure(
                    payload,
                    reason=str(exc) or type(exc).__name__,
                    exception=type(exc).__name__,
                )
                return

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WEBHOOK_RELAY_DELIVERED",
            "from": payload.sender,
            "status_code": response.status_code,
        })

    def _report_failure(self, payload: RelayPayload, **details: Any) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WEBHOOK_RELAY_FAILED",
            "stage": "delivery",
            "from": payload.sender,
            **details,
        })
