"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Own the process-wide lifecycle runtime (started / stopped by lifespan)
- Register routes
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from lifecycle.retry import RetryDelays
from lifecycle.runtime import Runtime
from lifecycle.runtime_context import ProviderFactory, RelayProtocol
from lifecycle.timers import Scheduler
from observability.logger import log_event
from providers.factory import build_provider_factory
from relay.webhook import WebhookRelay
from services.dispatch import MessageDispatchService
from services.status import StatusQueryService

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    provider_factory: ProviderFactory | None = None,
    relay: RelayProtocol | None = None,
    scheduler: Scheduler | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with fake providers, relays and clocks
    - Environment-specific setup
    - ASGI server compatibility

    Raises:
        ValueError if the configured session provider is unknown.
    """
    config = config or AppConfig.load_from_env()
    factory = provider_factory or build_provider_factory(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        webhook = relay or WebhookRelay(
            url=config.webhook_url,
            timeout_s=config.webhook_timeout_s,
        )
        runtime = Runtime(
            provider_factory=factory,
            relay=webhook,
            scheduler=scheduler,
            delays=RetryDelays(
                reconnect_ms=config.reconnect_delay_ms,
                init_retry_ms=config.init_retry_delay_ms,
            ),
        )

        app.state.runtime = runtime
        app.state.status_service = StatusQueryService(runtime)
        app.state.dispatch_service = MessageDispatchService(runtime)

        log_event({
            "ts_ms": int(time.time() * 1000),
            "event_type": "SERVER_STARTING",
            "env": config.env,
            "port": config.port,
            "webhook_configured": webhook.is_configured(),
        })
        await runtime.start()
        try:
            yield
        finally:
            await runtime.shutdown()
            if isinstance(webhook, WebhookRelay):
                await webhook.aclose()
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "SERVER_STOPPED",
            })

    app = FastAPI(title="WhatsApp Bridge", lifespan=lifespan)

    app.state.config = config
    app.state.started_monotonic = time.monotonic()

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
