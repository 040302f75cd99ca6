"""
Side-effect command definitions for the connection lifecycle.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from relay.payload import RelayPayload


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    Stable discriminants used for logging and runtime dispatch.
    """

    # Provider
    START_PROVIDER = "START_PROVIDER"
    STOP_PROVIDER = "STOP_PROVIDER"

    # Timers
    SCHEDULE_RECONNECT = "SCHEDULE_RECONNECT"

    # Relay
    RELAY_MESSAGE = "RELAY_MESSAGE"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Provider Commands
# =============================================================================

@dataclass(frozen=True)
class StartProvider(Command):
    """Request a fresh provider instance for the given generation."""
    generation: int
    command_type: CommandType = CommandType.START_PROVIDER


@dataclass(frozen=True)
class StopProvider(Command):
    """Release the provider instance of a superseded generation."""
    generation: int
    command_type: CommandType = CommandType.STOP_PROVIDER


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class ScheduleReconnect(Command):
    """
    Request that runtime emit ReconnectDue(generation) after delay_ms.

    Scheduling replaces any pending timer with the same timer_id.
    """
    timer_id: str
    delay_ms: int
    generation: int
    command_type: CommandType = CommandType.SCHEDULE_RECONNECT


# =============================================================================
# Relay Commands
# =============================================================================

@dataclass(frozen=True)
class RelayMessage(Command):
    """Forward an inbound message to the webhook consumer (fire-and-forget)."""
    payload: RelayPayload
    command_type: CommandType = CommandType.RELAY_MESSAGE


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
