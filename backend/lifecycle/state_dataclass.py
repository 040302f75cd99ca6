"""
Authoritative connection state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
- Instances are never mutated; the runtime swaps the reference.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import STATUS_INITIALIZING
from lifecycle.enums.phase import Phase
from lifecycle.retry import RetryAttempt


@dataclass(frozen=True)
class ConnectionState:
    """Immutable snapshot of the connection lifecycle."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    phase: Phase = Phase.INITIALIZING

    # Present only while AWAITING_SCAN
    pending_challenge: str | None = None

    # Human-readable description of the current phase, always set
    status_message: str = STATUS_INITIALIZING

    last_disconnect_reason: str | None = None

    # ------------------------------------------------------------------
    # Provider generation
    # ------------------------------------------------------------------
    # 0 means "no provider has been requested yet".
    # Bumped by the reducer only, once per requested provider instance.
    generation: int = 0

    # ------------------------------------------------------------------
    # Recovery bookkeeping
    # ------------------------------------------------------------------
    # Consecutive recovery attempts since the last READY. Reported only;
    # retries never stop.
    retry_attempt: RetryAttempt = RetryAttempt(attempt=0)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None

    updated_ts_ms: int = 0
