# pylint: disable=missing-module-docstring,missing-function-docstring
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from lifecycle.enums.phase import Phase
from lifecycle.retry import RetryAttempt
from lifecycle.state_dataclass import ConnectionState
from services.status import StatusQueryService


@dataclass
class StubSource:
    state: ConnectionState
    relay_configured: bool = False


def test_initial_snapshot():
    service = StatusQueryService(StubSource(ConnectionState()))

    snap = service.snapshot().to_json()

    assert snap["ready"] is False
    assert snap["status"] == "Initializing..."
    assert snap["hasQR"] is False
    assert snap["webhookConfigured"] is False
    assert snap["phase"] == "INITIALIZING"
    assert snap["reconnectAttempts"] == 0
    assert snap["lastDisconnectReason"] is None
    assert datetime.fromisoformat(snap["timestamp"]).tzinfo is not None


def test_ready_snapshot_reports_webhook():
    state = ConnectionState(phase=Phase.READY, status_message="Connected and ready", generation=1)
    service = StatusQueryService(StubSource(state, relay_configured=True))

    snap = service.snapshot()

    assert snap.ready is True
    assert snap.webhook_configured is True
    assert snap.to_json()["status"] == "Connected and ready"


def test_awaiting_scan_exposes_challenge():
    state = ConnectionState(
        phase=Phase.AWAITING_SCAN,
        pending_challenge="XYZ",
        status_message="QR Code generated - ready to scan",
        generation=1,
    )
    service = StatusQueryService(StubSource(state))

    assert service.snapshot().has_challenge is True
    assert service.challenge().to_json() == {
        "hasQR": True,
        "qr": "XYZ",
        "status": "QR Code generated - ready to scan",
    }


def test_challenge_absent_outside_scan():
    state = ConnectionState(phase=Phase.READY, status_message="Connected and ready", generation=1)
    service = StatusQueryService(StubSource(state))

    assert service.challenge().to_json() == {
        "hasQR": False,
        "qr": None,
        "status": "Connected and ready",
    }


def test_recovery_fields_are_reported():
    state = ConnectionState(
        phase=Phase.DISCONNECTED,
        status_message="Disconnected: network",
        last_disconnect_reason="network",
        generation=3,
        retry_attempt=RetryAttempt(attempt=2),
    )
    snap = StatusQueryService(StubSource(state)).snapshot().to_json()

    assert snap["ready"] is False
    assert snap["phase"] == "DISCONNECTED"
    assert snap["reconnectAttempts"] == 2
    assert snap["lastDisconnectReason"] == "network"


def test_snapshot_follows_state_swaps():
    source = StubSource(ConnectionState())
    service = StatusQueryService(source)
    assert service.snapshot().ready is False

    source.state = ConnectionState(phase=Phase.READY, generation=1)
    assert service.snapshot().ready is True
