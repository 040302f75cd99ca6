"""
Pure connection lifecycle reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (phase, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from constants import (
    DEFAULT_MESSAGE_TYPE,
    STATUS_AUTH_FAILED_PREFIX,
    STATUS_AUTHENTICATED,
    STATUS_DISCONNECTED_PREFIX,
    STATUS_ERROR_PREFIX,
    STATUS_INIT_FAILED_PREFIX,
    STATUS_INITIALIZING,
    STATUS_QR_ISSUED,
    STATUS_READY,
)
from lifecycle.commands import (
    Command,
    LogEvent,
    RelayMessage,
    ScheduleReconnect,
    StartProvider,
    StopProvider,
)
from lifecycle.enums.phase import Phase
from lifecycle.events import (
    Authenticated,
    AuthFailed,
    Disconnected,
    Event,
    InternalError,
    MessageReceived,
    ProviderEvent,
    ProviderInitFailed,
    QRIssued,
    Ready,
    ReconnectDue,
    Start,
)
from lifecycle.retry import (
    FailureType,
    RetryDelays,
    get_retry_delay_ms,
    next_attempt,
    reset_attempt,
)
from lifecycle.state_dataclass import ConnectionState
from relay.payload import RelayPayload


# =============================================================================
# Invariants
# =============================================================================
# - pending_challenge is set iff phase is AWAITING_SCAN
# - generation is bumped ONLY when a new provider instance is requested
# - at most one recovery timer is pending; it is keyed by TIMER_RECOVERY
# - a recovery timer only acts if its generation is still current

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_RECOVERY = "provider_recovery"

_DEFAULT_DELAYS = RetryDelays()

# Phases in which a pairing challenge may be (re)issued
_QR_ACCEPTING = frozenset({Phase.INITIALIZING, Phase.AWAITING_SCAN, Phase.AUTH_FAILED})

# Phases in which a recovery timer is owed
_RECOVERING = frozenset({Phase.DISCONNECTED, Phase.FAILED})


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: ConnectionState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "phase": state.phase.value,
            "generation": state.generation,
            "event_type": event.event_type.value,
            "decision": decision,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: ConnectionState, event: Event, reason: str
) -> tuple[ConnectionState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _changed(
    old: ConnectionState,
    new: ConnectionState,
    event: Event,
    source: str,
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_phase": old.phase.value,
            "to_phase": new.phase.value,
            "source": source,
        },
    )


def _with_reason(prefix: str, reason: str) -> str:
    return f"{prefix}{reason}" if reason else prefix.rstrip(": ")


def _schedule_recovery(
    state: ConnectionState,
    failure: FailureType,
    delays: RetryDelays,
) -> ScheduleReconnect:
    return ScheduleReconnect(
        timer_id=TIMER_RECOVERY,
        delay_ms=get_retry_delay_ms(failure, delays),
        generation=state.generation,
    )


# =============================================================================
# Runtime lifecycle
# =============================================================================

def _on_start(
    state: ConnectionState, event: Start
) -> tuple[ConnectionState, tuple[Command, ...]]:
    if state.generation != 0:
        return _ignore(state, event, "already_started")

    new_state = replace(
        state,
        phase=Phase.INITIALIZING,
        pending_challenge=None,
        status_message=STATUS_INITIALIZING,
        generation=1,
        updated_ts_ms=event.ts_ms,
    )
    return new_state, _logs_last((
        StartProvider(generation=new_state.generation),
        _log(new_state, event, "start_provider", {"generation": new_state.generation}),
    ))


# =============================================================================
# Authentication
# =============================================================================

def _on_qr_issued(
    state: ConnectionState, event: QRIssued
) -> tuple[ConnectionState, tuple[Command, ...]]:
    if not event.token:
        return _ignore(state, event, "empty_challenge")

    # A late challenge after authentication is a provider artifact
    if state.phase not in _QR_ACCEPTING:
        return _ignore(state, event, f"qr_in_{state.phase.value.lower()}")

    new_state = replace(
        state,
        phase=Phase.AWAITING_SCAN,
        pending_challenge=event.token,
        status_message=STATUS_QR_ISSUED,
        updated_ts_ms=event.ts_ms,
    )

    if state.phase is Phase.AWAITING_SCAN:
        return new_state, (_log(new_state, event, "challenge_refreshed"),)

    return new_state, _logs_last((
        _log(new_state, event, "challenge_stored"),
        _changed(state, new_state, event, "qr_issued"),
    ))


def _on_authenticated(
    state: ConnectionState, event: Authenticated
) -> tuple[ConnectionState, tuple[Command, ...]]:
    # INITIALIZING covers a restored session that never needed a scan
    if state.phase not in (Phase.AWAITING_SCAN, Phase.INITIALIZING):
        return _ignore(state, event, f"authenticated_in_{state.phase.value.lower()}")

    new_state = replace(
        state,
        phase=Phase.AUTHENTICATED,
        pending_challenge=None,
        status_message=STATUS_AUTHENTICATED,
        updated_ts_ms=event.ts_ms,
    )
    return new_state, (_changed(state, new_state, event, "authenticated"),)


def _on_ready(
    state: ConnectionState, event: Ready
) -> tuple[ConnectionState, tuple[Command, ...]]:
    if state.phase is Phase.READY:
        return _ignore(state, event, "already_ready")

    if state.phase not in (
        Phase.AUTHENTICATED,
        Phase.AWAITING_SCAN,
        Phase.INITIALIZING,
    ):
        return _ignore(state, event, f"ready_in_{state.phase.value.lower()}")

    new_state = replace(
        state,
        phase=Phase.READY,
        pending_challenge=None,
        status_message=STATUS_READY,
        retry_attempt=reset_attempt(),
        updated_ts_ms=event.ts_ms,
    )
    return new_state, (_changed(state, new_state, event, "ready"),)


def _on_auth_failed(
    state: ConnectionState, event: AuthFailed
) -> tuple[ConnectionState, tuple[Command, ...]]:
    # The provider is already being replaced; keep the recovery owed
    if state.phase in _RECOVERING:
        return _ignore(state, event, f"auth_failed_in_{state.phase.value.lower()}")

    new_state = replace(
        state,
        phase=Phase.AUTH_FAILED,
        pending_challenge=None,
        status_message=_with_reason(f"{STATUS_AUTH_FAILED_PREFIX}: ", event.reason),
        updated_ts_ms=event.ts_ms,
    )
    return new_state, _logs_last((
        _log(new_state, event, "auth_failed", {"reason": event.reason}),
        _changed(state, new_state, event, "auth_failed"),
    ))


# =============================================================================
# Disconnect / recovery
# =============================================================================

def _on_disconnected(
    state: ConnectionState,
    event: Disconnected,
    delays: RetryDelays,
) -> tuple[ConnectionState, tuple[Command, ...]]:
    if state.phase is Phase.FAILED:
        return _ignore(state, event, "disconnected_in_failed")

    status = f"{STATUS_DISCONNECTED_PREFIX}{event.reason}"

    # One recovery per generation: a repeated disconnect only updates the reason
    if state.phase is Phase.DISCONNECTED:
        new_state = replace(
            state,
            status_message=status,
            last_disconnect_reason=event.reason,
            updated_ts_ms=event.ts_ms,
        )
        return new_state, (
            _log(new_state, event, "reconnect_already_pending", {"reason": event.reason}),
        )

    new_state = replace(
        state,
        phase=Phase.DISCONNECTED,
        pending_challenge=None,
        status_message=status,
        last_disconnect_reason=event.reason,
        updated_ts_ms=event.ts_ms,
    )
    schedule = _schedule_recovery(new_state, FailureType.DISCONNECTED, delays)
    return new_state, _logs_last((
        schedule,
        _log(
            new_state,
            event,
            "schedule_reconnect",
            {"reason": event.reason, "delay_ms": schedule.delay_ms},
        ),
        _changed(state, new_state, event, "disconnected"),
    ))


def _on_provider_init_failed(
    state: ConnectionState,
    event: ProviderInitFailed,
    delays: RetryDelays,
) -> tuple[ConnectionState, tuple[Command, ...]]:
    if state.generation == 0 or event.generation != state.generation:
        return _ignore(state, event, "stale_generation")

    if state.phase is not Phase.INITIALIZING:
        return _ignore(state, event, f"init_failed_in_{state.phase.value.lower()}")

    new_state = replace(
        state,
        phase=Phase.FAILED,
        pending_challenge=None,
        status_message=f"{STATUS_INIT_FAILED_PREFIX}{event.reason}",
        updated_ts_ms=event.ts_ms,
    )
    schedule = _schedule_recovery(new_state, FailureType.INIT_ERROR, delays)
    return new_state, _logs_last((
        schedule,
        _log(
            new_state,
            event,
            "schedule_reinit",
            {"reason": event.reason, "delay_ms": schedule.delay_ms},
        ),
        _changed(state, new_state, event, "provider_init_failed"),
    ))


def _on_reconnect_due(
    state: ConnectionState, event: ReconnectDue
) -> tuple[ConnectionState, tuple[Command, ...]]:
    if event.generation != state.generation:
        return _ignore(state, event, "stale_timer")

    if state.phase not in _RECOVERING:
        return _ignore(state, event, f"reconnect_in_{state.phase.value.lower()}")

    old_generation = state.generation
    new_state = replace(
        state,
        phase=Phase.INITIALIZING,
        pending_challenge=None,
        status_message=STATUS_INITIALIZING,
        generation=old_generation + 1,
        retry_attempt=next_attempt(state.retry_attempt),
        updated_ts_ms=event.ts_ms,
    )
    return new_state, _logs_last((
        StopProvider(generation=old_generation),
        StartProvider(generation=new_state.generation),
        _log(
            new_state,
            event,
            "start_provider",
            {
                "generation": new_state.generation,
                "attempt": new_state.retry_attempt.attempt,
            },
        ),
        _changed(state, new_state, event, "reconnect"),
    ))


# =============================================================================
# Messages / errors
# =============================================================================

def _on_message_received(
    state: ConnectionState, event: MessageReceived
) -> tuple[ConnectionState, tuple[Command, ...]]:
    payload = RelayPayload(
        sender=event.sender,
        body=event.body,
        timestamp=event.timestamp,
        message_type=event.message_type or DEFAULT_MESSAGE_TYPE,
    )
    return state, _logs_last((
        RelayMessage(payload=payload),
        _log(
            state,
            event,
            "relay_message",
            {"from": event.sender, "body_len": len(event.body)},
        ),
    ))


def _on_internal_error(
    state: ConnectionState, event: InternalError
) -> tuple[ConnectionState, tuple[Command, ...]]:
    new_state = replace(
        state,
        status_message=f"{STATUS_ERROR_PREFIX}{event.reason}",
        last_error=event.reason,
        updated_ts_ms=event.ts_ms,
    )
    return new_state, (_log(new_state, event, "record_error", {"reason": event.reason}),)


# =============================================================================
# Entry point
# =============================================================================

def reduce(
    state: ConnectionState,
    event: Event,
    *,
    delays: RetryDelays = _DEFAULT_DELAYS,
) -> tuple[ConnectionState, tuple[Command, ...]]:
    """
    Apply one event to the connection state.

    Returns the new state and the commands the runtime must execute,
    in order. Unknown or out-of-place events leave the state untouched
    and produce a single "ignore" log.
    """
    if isinstance(event, ProviderEvent):
        if state.generation == 0:
            return _ignore(state, event, "no_provider")
        if event.generation != state.generation:
            return _ignore(state, event, "stale_generation")

    if isinstance(event, Start):
        return _on_start(state, event)
    if isinstance(event, QRIssued):
        return _on_qr_issued(state, event)
    if isinstance(event, Authenticated):
        return _on_authenticated(state, event)
    if isinstance(event, Ready):
        return _on_ready(state, event)
    if isinstance(event, AuthFailed):
        return _on_auth_failed(state, event)
    if isinstance(event, Disconnected):
        return _on_disconnected(state, event, delays)
    if isinstance(event, MessageReceived):
        return _on_message_received(state, event)
    if isinstance(event, ProviderInitFailed):
        return _on_provider_init_failed(state, event, delays)
    if isinstance(event, ReconnectDue):
        return _on_reconnect_due(state, event)
    if isinstance(event, InternalError):
        return _on_internal_error(state, event)

    return _ignore(state, event, "unhandled_event")
