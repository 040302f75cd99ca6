"""
Collaborator protocols for the lifecycle runtime.

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero lifecycle logic
- Zero state mutation
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from lifecycle.events import Event
from relay.payload import RelayPayload


# ---------------------------------------------------------------------
# Event sink
# ---------------------------------------------------------------------

# Non-blocking; the runtime queues the event for its single writer.
EventSink = Callable[[Event], None]


# ---------------------------------------------------------------------
# Session provider
# ---------------------------------------------------------------------

@runtime_checkable
class SessionProviderProtocol(Protocol):
    """
    Messaging session provider (browser client, protocol library, fake).

    Contract:
    - start() begins the handshake; progress is reported as events
      through the sink handed to the factory
    - send() delivers one message or raises
    - stop() releases every resource the provider owns
    """

    async def start(self) -> None: ...

    async def send(self, address: str, body: str) -> None: ...

    async def stop(self) -> None: ...


class ProviderFactory(Protocol):
    """
    Builds a provider for one generation.

    The sink stamps nothing; providers construct events with the
    generation they were given.
    """

    def __call__(
        self,
        generation: int,
        emit: EventSink,
    ) -> SessionProviderProtocol: ...


# ---------------------------------------------------------------------
# Relay
# ---------------------------------------------------------------------

@runtime_checkable
class RelayProtocol(Protocol):
    def is_configured(self) -> bool: ...

    def relay(self, payload: RelayPayload) -> None:
        """Fire-and-forget; must return without waiting on delivery."""
