"""
Read-only projection of the connection state.

Every snapshot is built from one ConnectionState reference, so fields can
never mix two transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from lifecycle.enums.phase import Phase
from lifecycle.state_dataclass import ConnectionState


class StatusSource(Protocol):
    @property
    def state(self) -> ConnectionState: ...

    @property
    def relay_configured(self) -> bool: ...


@dataclass(frozen=True)
class StatusSnapshot:
    ready: bool
    status: str
    has_challenge: bool
    webhook_configured: bool
    timestamp: str
    phase: Phase
    reconnect_attempts: int
    last_disconnect_reason: str | None

    def to_json(self) -> dict[str, Any]:
        return {
            "ready": self.ready,
            "status": self.status,
            "hasQR": self.has_challenge,
            "webhookConfigured": self.webhook_configured,
            "timestamp": self.timestamp,
            "phase": self.phase.value,
            "reconnectAttempts": self.reconnect_attempts,
            "lastDisconnectReason": self.last_disconnect_reason,
        }


@dataclass(frozen=True)
class ChallengeSnapshot:
    challenge: str | None
    status: str

    def to_json(self) -> dict[str, Any]:
        return {
            "hasQR": self.challenge is not None,
            "qr": self.challenge,
            "status": self.status,
        }


class StatusQueryService:
    """Pure reads; never touches the write lock."""

    def __init__(self, source: StatusSource) -> None:
        self._source = source

    def snapshot(self) -> StatusSnapshot:
        state = self._source.state
        return StatusSnapshot(
            ready=state.phase is Phase.READY,
            status=state.status_message,
            has_challenge=bool(state.pending_challenge),
            webhook_configured=self._source.relay_configured,
            timestamp=datetime.now(timezone.utc).isoformat(),
            phase=state.phase,
            reconnect_attempts=state.retry_attempt.attempt,
            last_disconnect_reason=state.last_disconnect_reason,
        )

    def challenge(self) -> ChallengeSnapshot:
        state = self._source.state
        return ChallengeSnapshot(
            challenge=state.pending_challenge or None,
            status=state.status_message,
        )
