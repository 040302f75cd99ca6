"""
Outbound message dispatch.

Validates send requests against the current connection state and forwards
them to the active session provider.

Validation order:
1. Phase must be READY                    -> NOT_READY (carries status text)
2. target and body must be non-empty      -> INVALID_REQUEST
3. target is normalized (see normalize_target)
4. provider.send(); any exception         -> PROVIDER_FAILURE

The runtime lock is never held across the provider call: the phase is read
once, from an immutable snapshot, on entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from constants import ADDRESS_DOMAIN_SEPARATOR, DEFAULT_ADDRESS_SUFFIX
from lifecycle.enums.phase import Phase
from lifecycle.runtime_context import SessionProviderProtocol
from lifecycle.state_dataclass import ConnectionState
from observability.logger import log_event
from observability.metrics import timed


class LifecycleView(Protocol):
    @property
    def state(self) -> ConnectionState: ...

    @property
    def provider(self) -> SessionProviderProtocol | None: ...


# =============================================================================
# Request / result types
# =============================================================================

@dataclass(frozen=True)
class OutboundMessageRequest:
    target: str
    body: str


@dataclass(frozen=True)
class Ack:
    """Successful delivery to the provider."""
    to: str
    timestamp: str  # ISO-8601, UTC


class DispatchErrorKind(str, Enum):
    NOT_READY = "not_ready"
    INVALID_REQUEST = "invalid_request"
    PROVIDER_FAILURE = "provider_failure"


@dataclass(frozen=True)
class DispatchError:
    kind: DispatchErrorKind
    detail: str


@dataclass(frozen=True)
class DispatchResult:
    """Exactly one of ack / error is set."""
    ack: Ack | None = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @staticmethod
    def fail(kind: DispatchErrorKind, detail: str) -> DispatchResult:
        return DispatchResult(error=DispatchError(kind=kind, detail=detail))


# =============================================================================
# Normalization
# =============================================================================

def normalize_target(target: str) -> str:
    """
    Turn a bare identifier into a fully qualified session address.

    A target that already contains the domain separator ("@") is returned
    unchanged, so group ("...@g.us") and individual ("...@c.us") addresses
    pass through and the function is idempotent. Anything else gets the
    individual-chat suffix:

        "15551234567"      -> "15551234567@c.us"
        "15551234567@c.us" -> "15551234567@c.us"
    """
    if ADDRESS_DOMAIN_SEPARATOR in target:
        return target
    return f"{target}{DEFAULT_ADDRESS_SUFFIX}"


# =============================================================================
# Service
# =============================================================================

class MessageDispatchService:
    """Validates and forwards outbound sends."""

    def __init__(self, lifecycle: LifecycleView) -> None:
        self._lifecycle = lifecycle

    async def send(self, request: OutboundMessageRequest) -> DispatchResult:
        state = self._lifecycle.state
        if state.phase is not Phase.READY:
            return DispatchResult.fail(DispatchErrorKind.NOT_READY, state.status_message)

        if not request.target or not request.body:
            return DispatchResult.fail(
                DispatchErrorKind.INVALID_REQUEST,
                "Both number and message are required",
            )

        address = normalize_target(request.target)

        provider = self._lifecycle.provider
        if provider is None:
            return DispatchResult.fail(
                DispatchErrorKind.PROVIDER_FAILURE,
                "no active session provider",
            )

        try:
            with timed("provider_send", details={"to": address}):
                await provider.send(address, request.body)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_FAILED",
                "to": address,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return DispatchResult.fail(
                DispatchErrorKind.PROVIDER_FAILURE,
                str(exc) or type(exc).__name__,
            )

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "DISPATCH_SENT",
            "to": address,
            "body_len": len(request.body),
        })
        return DispatchResult(
            ack=Ack(to=address, timestamp=datetime.now(timezone.utc).isoformat())
        )


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)
