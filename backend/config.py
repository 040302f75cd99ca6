"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No state machine logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_PORT,
    INIT_RETRY_DELAY_MS,
    RECONNECT_DELAY_MS,
    WEBHOOK_PLACEHOLDER_URL,
    WEBHOOK_TIMEOUT_S,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and passed to the app factory.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"
    port: int = DEFAULT_PORT

    # ------------------------------------------------------------------
    # Webhook relay
    # ------------------------------------------------------------------

    webhook_url: str | None = None
    webhook_timeout_s: float = WEBHOOK_TIMEOUT_S

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    reconnect_delay_ms: int = RECONNECT_DELAY_MS
    init_retry_delay_ms: int = INIT_RETRY_DELAY_MS

    # ------------------------------------------------------------------
    # Session provider
    # ------------------------------------------------------------------

    session_provider: str = "dry_run"

    @property
    def webhook_configured(self) -> bool:
        """True when relay has a real target (not unset, not the placeholder)."""
        return bool(self.webhook_url) and self.webhook_url != WEBHOOK_PLACEHOLDER_URL

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            port=int(os.environ.get("PORT", str(DEFAULT_PORT))),

            webhook_url=(
                os.environ.get("WEBHOOK_URL")
                or os.environ.get("N8N_WEBHOOK_URL")
                or None
            ),
            webhook_timeout_s=float(
                os.environ.get("WEBHOOK_TIMEOUT_S", str(WEBHOOK_TIMEOUT_S))
            ),

            reconnect_delay_ms=int(
                os.environ.get("RECONNECT_DELAY_MS", str(RECONNECT_DELAY_MS))
            ),
            init_retry_delay_ms=int(
                os.environ.get("INIT_RETRY_DELAY_MS", str(INIT_RETRY_DELAY_MS))
            ),

            session_provider=os.environ.get("SESSION_PROVIDER", "dry_run"),
        )
