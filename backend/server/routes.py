"""
Route registration for the bridge API.

Responsibilities:
- Define HTTP endpoints
- Map dispatch results to HTTP status codes
- Pull dependencies from app.state
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError

from lifecycle.enums.phase import Phase
from services.dispatch import (
    DispatchErrorKind,
    MessageDispatchService,
    OutboundMessageRequest,
)
from services.status import StatusQueryService


class SendBody(BaseModel):
    # Phone numbers often arrive as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    number: str | None = None
    message: str | None = None


async def _read_send_body(request: Request) -> SendBody:
    """
    Parse the /send body without rejecting the request.

    A missing, non-JSON or malformed body yields empty fields, so the
    dispatch service decides the outcome (not ready before invalid).
    """
    try:
        payload = await request.json()
    except ValueError:
        return SendBody()

    if not isinstance(payload, dict):
        return SendBody()

    try:
        return SendBody.model_validate(payload)
    except ValidationError:
        return SendBody()


_ERROR_STATUS_CODES = {
    DispatchErrorKind.NOT_READY: 400,
    DispatchErrorKind.INVALID_REQUEST: 400,
    DispatchErrorKind.PROVIDER_FAILURE: 500,
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime_s(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_monotonic, 3)


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        # Liveness only; deliberately independent of the connection state
        return {
            "status": "Server running",
            "timestamp": _utc_now(),
            "uptime": _uptime_s(request),
        }

    @app.get("/status")
    async def status(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        service: StatusQueryService = request.app.state.status_service
        return service.snapshot().to_json()

    @app.get("/qr")
    async def qr(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        service: StatusQueryService = request.app.state.status_service
        return service.challenge().to_json()

    @app.get("/test")
    async def diagnostics(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        service: StatusQueryService = request.app.state.status_service
        snapshot = service.snapshot()
        return {
            "server": "OK",
            "whatsappClient": "Connected" if snapshot.phase is Phase.READY else "Not connected",
            "webhook": "Configured" if snapshot.webhook_configured else "Not configured",
            "environment": request.app.state.config.env,
            "uptime": _uptime_s(request),
        }

    @app.post("/send")
    async def send(request: Request) -> JSONResponse: # pyright: ignore[reportUnusedFunction]
        service: MessageDispatchService = request.app.state.dispatch_service
        body = await _read_send_body(request)

        result = await service.send(
            OutboundMessageRequest(
                target=body.number or "",
                body=body.message or "",
            )
        )

        if result.error is not None:
            code = _ERROR_STATUS_CODES[result.error.kind]
            if result.error.kind is DispatchErrorKind.NOT_READY:
                content = {"error": "Bot not ready", "status": result.error.detail}
            elif result.error.kind is DispatchErrorKind.INVALID_REQUEST:
                content = {"error": result.error.detail}
            else:
                content = {"error": "Failed to send message", "details": result.error.detail}
            return JSONResponse(status_code=code, content=content)

        assert result.ack is not None
        return JSONResponse(
            status_code=200,
            content={
                "success": True,
                "message": "Message sent successfully",
                "to": result.ack.to,
                "timestamp": result.ack.timestamp,
            },
        )
