"""
Behavioral constants for the bridge.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- Deployment-specific values (URLs, ports) live in config.py instead.
- Delays that config.py can override are the defaults used when the
  environment is silent.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Recovery delays
# =============================================================================

# Delay between a provider disconnect and the next provider instance (D1)
RECONNECT_DELAY_MS: Final[int] = 30_000

# Delay between a failed provider construction and the next attempt (D2)
INIT_RETRY_DELAY_MS: Final[int] = 60_000

# =============================================================================
# Status messages
# =============================================================================

STATUS_INITIALIZING: Final[str] = "Initializing..."
STATUS_QR_ISSUED: Final[str] = "QR Code generated - ready to scan"
STATUS_AUTHENTICATED: Final[str] = "Authenticated"
STATUS_READY: Final[str] = "Connected and ready"
STATUS_AUTH_FAILED_PREFIX: Final[str] = "Authentication failed"
STATUS_DISCONNECTED_PREFIX: Final[str] = "Disconnected: "
STATUS_INIT_FAILED_PREFIX: Final[str] = "Failed to initialize: "
STATUS_ERROR_PREFIX: Final[str] = "Error: "

# =============================================================================
# Addressing
# =============================================================================

# A target containing this character is already a fully qualified address
ADDRESS_DOMAIN_SEPARATOR: Final[str] = "@"

# Suffix appended to bare identifiers (individual chat address)
DEFAULT_ADDRESS_SUFFIX: Final[str] = "@c.us"

# =============================================================================
# Webhook relay
# =============================================================================

# Placeholder shipped in example env files; treated as "not configured"
WEBHOOK_PLACEHOLDER_URL: Final[str] = "YOUR_N8N_WEBHOOK_URL"

WEBHOOK_TIMEOUT_S: Final[float] = 10.0

# Upper bound on concurrent relay deliveries
RELAY_MAX_IN_FLIGHT: Final[int] = 8

DEFAULT_MESSAGE_TYPE: Final[str] = "chat"

# =============================================================================
# HTTP
# =============================================================================

DEFAULT_PORT: Final[int] = 3000
