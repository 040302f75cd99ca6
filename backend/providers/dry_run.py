"""
Dry-run session provider.

This provider never talks to a messaging network.
It walks through the handshake on start() and records sends instead of
delivering them. Used for local runs and as the default provider.
"""

from __future__ import annotations

import time
import uuid

from lifecycle.events import (
    Authenticated,
    Disconnected,
    EventType,
    MessageReceived,
    QRIssued,
    Ready,
)
from lifecycle.runtime_context import EventSink
from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class DryRunSessionProvider:
    """
    Simulated provider.

    require_scan=False behaves like a restored session
    (AUTHENTICATED then READY); require_scan=True stops after issuing a
    challenge until complete_scan() is called.
    """

    def __init__(
        self,
        *,
        generation: int,
        emit: EventSink,
        require_scan: bool = False,
    ) -> None:
        self._generation = generation
        self._emit = emit
        self._require_scan = require_scan
        self._stopped = False

        self.sent: list[tuple[str, str]] = []

    async def start(self) -> None:
        if self._require_scan:
            self._emit(QRIssued(
                event_type=EventType.QR_ISSUED,
                ts_ms=_now_ms(),
                generation=self._generation,
                token=f"dry-run-{uuid.uuid4().hex}",
            ))
            return
        self.complete_scan()

    def complete_scan(self) -> None:
        self._emit(Authenticated(
            event_type=EventType.AUTHENTICATED,
            ts_ms=_now_ms(),
            generation=self._generation,
        ))
        self._emit(Ready(
            event_type=EventType.READY,
            ts_ms=_now_ms(),
            generation=self._generation,
        ))

    def simulate_inbound(self, sender: str, body: str, message_type: str | None = None) -> None:
        self._emit(MessageReceived(
            event_type=EventType.MESSAGE_RECEIVED,
            ts_ms=_now_ms(),
            generation=self._generation,
            sender=sender,
            body=body,
            timestamp=time.time(),
            message_type=message_type,
        ))

    def simulate_disconnect(self, reason: str) -> None:
        self._emit(Disconnected(
            event_type=EventType.DISCONNECTED,
            ts_ms=_now_ms(),
            generation=self._generation,
            reason=reason,
        ))

    async def send(self, address: str, body: str) -> None:
        if self._stopped:
            raise RuntimeError("provider stopped")
        # No side effects. Never calls external services.
        self.sent.append((address, body))
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "DRY_RUN_SEND",
            "generation": self._generation,
            "to": address,
            "body_len": len(body),
        })

    async def stop(self) -> None:
        self._stopped = True
