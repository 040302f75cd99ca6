"""
Webhook relay payload.

Pure value object built from an inbound message event.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from constants import DEFAULT_MESSAGE_TYPE


@dataclass(frozen=True)
class RelayPayload:
    """Inbound message data forwarded to the webhook consumer."""

    sender: str
    body: str
    timestamp: float
    message_type: str = DEFAULT_MESSAGE_TYPE

    def to_json(self) -> dict[str, Any]:
        """Wire shape expected by the webhook consumer."""
        return {
            "from": self.sender,
            "body": self.body,
            "timestamp": self.timestamp,
            "type": self.message_type,
        }
