"""
Connection lifecycle phase enumeration.

Rules:
- This enum defines ONLY the lifecycle phases.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """
    Lifecycle phase of the messaging session.

    Only READY accepts outbound sends.
    """

    INITIALIZING = "INITIALIZING"
    AWAITING_SCAN = "AWAITING_SCAN"
    AUTHENTICATED = "AUTHENTICATED"
    READY = "READY"
    AUTH_FAILED = "AUTH_FAILED"
    DISCONNECTED = "DISCONNECTED"
    FAILED = "FAILED"
