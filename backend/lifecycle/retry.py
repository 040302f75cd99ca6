"""
Recovery policy helpers.

Purpose:
- Centralize the fixed-delay recovery rules
- Keep reducer pure

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from constants import INIT_RETRY_DELAY_MS, RECONNECT_DELAY_MS


# =============================================================================
# Failure Types
# =============================================================================

class FailureType(str, Enum):
    """
    Failure classification used by the recovery policy.

    DISCONNECTED:
        An established (or establishing) provider session was lost.
        Recovered after the reconnect delay (D1).

    INIT_ERROR:
        Constructing or starting the provider raised before it produced
        any event. Recovered after the init retry delay (D2).

    Notes:
    - Both failures are retried forever; there is no attempt limit.
    - Authentication failure is NOT a recoverable failure type: the
      provider decides whether to issue a fresh challenge.
    """

    DISCONNECTED = "disconnected"
    INIT_ERROR = "init_error"


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable recovery attempt counter.

    Semantics:
    - attempt == 0 means no recovery since the last READY.
    - attempt >= 1 counts recoveries performed since then.
    """
    attempt: int


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """Return a new RetryAttempt with attempt incremented by 1."""
    return RetryAttempt(attempt=current.attempt + 1)


def reset_attempt() -> RetryAttempt:
    """Returns a fresh retry attempt counter."""
    return RetryAttempt(attempt=0)


# =============================================================================
# Delay Policy
# =============================================================================

@dataclass(frozen=True)
class RetryDelays:
    """
    Fixed recovery delays.

    Defaults come from constants.py; AppConfig may override both.
    """
    reconnect_ms: int = RECONNECT_DELAY_MS
    init_retry_ms: int = INIT_RETRY_DELAY_MS


def get_retry_delay_ms(failure: FailureType, delays: RetryDelays) -> int:
    """
    Returns delay before the next provider instance.

    No backoff: the provider's own reconnection behavior is opaque, so the
    delay does not grow with the attempt count.
    """
    if failure is FailureType.DISCONNECTED:
        return delays.reconnect_ms
    if failure is FailureType.INIT_ERROR:
        return delays.init_retry_ms
    raise ValueError(failure)
