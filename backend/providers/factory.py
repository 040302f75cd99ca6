"""
Provider factory construction.

Design rules:
- No lifecycle logic here
- Only construction / wiring
"""

from __future__ import annotations

from config import AppConfig
from lifecycle.runtime_context import EventSink, ProviderFactory, SessionProviderProtocol
from providers.dry_run import DryRunSessionProvider


SUPPORTED_PROVIDERS = ("dry_run", "dry_run_scan")


def build_provider_factory(config: AppConfig) -> ProviderFactory:
    """
    Select the provider implementation named by SESSION_PROVIDER.

    Raises:
        ValueError for an unknown provider name.
    """
    name = config.session_provider.lower()

    if name not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unknown SESSION_PROVIDER {config.session_provider!r}; "
            f"expected one of {', '.join(SUPPORTED_PROVIDERS)}"
        )

    require_scan = name == "dry_run_scan"

    def _factory(generation: int, emit: EventSink) -> SessionProviderProtocol:
        return DryRunSessionProvider(
            generation=generation,
            emit=emit,
            require_scan=require_scan,
        )

    return _factory
