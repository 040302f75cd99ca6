"""
Event definitions for the connection lifecycle reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Provider events carry the generation of the provider instance that produced
them; the reducer drops events from any generation but the current one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (phase, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Runtime lifecycle
    # ------------------------------------------------------------------
    START = "START"

    # ------------------------------------------------------------------
    # Session provider
    # ------------------------------------------------------------------
    QR_ISSUED = "QR_ISSUED"
    AUTHENTICATED = "AUTHENTICATED"
    READY = "READY"
    AUTH_FAILED = "AUTH_FAILED"
    DISCONNECTED = "DISCONNECTED"
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------
    PROVIDER_INIT_FAILED = "PROVIDER_INIT_FAILED"
    RECONNECT_DUE = "RECONNECT_DUE"

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Base Events
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class ProviderEvent(Event):
    """
    Base class for events emitted by a session provider instance.

    The reducer MUST ignore events whose generation does not match the
    currently active provider generation.
    """

    generation: int


# =============================================================================
# Runtime Events
# =============================================================================

@dataclass(frozen=True)
class Start(Event):
    """Runtime started; the first provider should be created."""


# =============================================================================
# Provider Events
# =============================================================================

@dataclass(frozen=True)
class QRIssued(ProviderEvent):
    """Provider produced a pairing challenge (QR payload)."""
    token: str


@dataclass(frozen=True)
class Authenticated(ProviderEvent):
    """Provider completed authentication."""


@dataclass(frozen=True)
class Ready(ProviderEvent):
    """Provider is connected and accepting sends."""


@dataclass(frozen=True)
class AuthFailed(ProviderEvent):
    """Authentication was rejected."""
    reason: str = ""


@dataclass(frozen=True)
class Disconnected(ProviderEvent):
    """Provider lost its session."""
    reason: str = ""


@dataclass(frozen=True)
class MessageReceived(ProviderEvent):
    """
    Inbound message observed by the provider.

    timestamp is the provider's own message timestamp (seconds since epoch
    for the browser client), not ts_ms.
    """
    sender: str
    body: str
    timestamp: float
    message_type: str | None = None


# =============================================================================
# Recovery Events
# =============================================================================

@dataclass(frozen=True)
class ProviderInitFailed(Event):
    """Constructing or starting a provider instance raised."""
    generation: int
    reason: str


@dataclass(frozen=True)
class ReconnectDue(Event):
    """
    Recovery delay elapsed.

    Carries the generation that was current when the timer was scheduled;
    a timer from an older generation is stale and ignored.
    """
    generation: int


# =============================================================================
# Errors
# =============================================================================

@dataclass(frozen=True)
class InternalError(Event):
    """An exception escaped event handling or a background task."""
    reason: str
