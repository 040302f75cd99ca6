# pylint: disable=missing-module-docstring,missing-function-docstring

import random

import pytest

from lifecycle.commands import (
    CommandType,
    LogEvent,
    RelayMessage,
    ScheduleReconnect,
    StartProvider,
    StopProvider,
)
from lifecycle.enums.phase import Phase
from lifecycle.events import (
    Event,
    EventType,
    InternalError,
    ProviderInitFailed,
    ReconnectDue,
    Start,
)
from lifecycle.reducer import reduce
from lifecycle.state_dataclass import ConnectionState

from fakes import (
    auth_failed,
    authenticated,
    disconnected,
    message_received,
    qr_issued,
    ready,
)


def _random_event(rng: random.Random, state: ConnectionState) -> Event:
    # Mostly current-generation events, sometimes stale ones
    generation = state.generation if rng.random() < 0.85 else max(0, state.generation - 1)
    choice = rng.randrange(11)

    if choice == 0:
        return qr_issued(generation, rng.choice(["A", "B", ""]))
    if choice == 1:
        return authenticated(generation)
    if choice == 2:
        return ready(generation)
    if choice == 3:
        return auth_failed(generation)
    if choice == 4:
        return disconnected(generation, rng.choice(["logout", "conflict"]))
    if choice == 5:
        return message_received(generation)
    if choice == 6:
        return ProviderInitFailed(
            event_type=EventType.PROVIDER_INIT_FAILED, ts_ms=0,
            generation=generation, reason="boom",
        )
    if choice == 7:
        return ReconnectDue(event_type=EventType.RECONNECT_DUE, ts_ms=0, generation=generation)
    if choice == 8:
        return InternalError(event_type=EventType.INTERNAL_ERROR, ts_ms=0, reason="oops")
    if choice == 9:
        return Start(event_type=EventType.START, ts_ms=0)
    return qr_issued(generation, "XYZ")


@pytest.mark.parametrize("seed", range(40))
def test_challenge_present_iff_awaiting_scan(seed: int):
    rng = random.Random(seed)
    state = ConnectionState()

    for _ in range(200):
        state, _ = reduce(state, _random_event(rng, state))

        has_challenge = bool(state.pending_challenge)
        assert has_challenge == (state.phase is Phase.AWAITING_SCAN)
        assert state.status_message


@pytest.mark.parametrize("seed", range(20))
def test_generation_is_monotonic_and_one_start_per_generation(seed: int):
    rng = random.Random(seed)
    state = ConnectionState()
    started: list[int] = []

    for _ in range(200):
        previous = state.generation
        state, commands = reduce(state, _random_event(rng, state))

        assert state.generation >= previous
        started.extend(c.generation for c in commands if isinstance(c, StartProvider))

    assert started == sorted(set(started))
    assert started == list(range(1, state.generation + 1))


@pytest.mark.parametrize("seed", range(20))
def test_at_most_one_recovery_scheduled_per_generation(seed: int):
    rng = random.Random(seed)
    state = ConnectionState()
    scheduled: list[int] = []

    for _ in range(300):
        state, commands = reduce(state, _random_event(rng, state))
        scheduled.extend(c.generation for c in commands if isinstance(c, ScheduleReconnect))

    assert len(scheduled) == len(set(scheduled))


@pytest.mark.parametrize("seed", range(10))
def test_reducer_emits_only_executable_commands(seed: int):
    rng = random.Random(seed)
    state = ConnectionState()
    executable = (StartProvider, StopProvider, ScheduleReconnect, RelayMessage, LogEvent)

    for _ in range(200):
        state, commands = reduce(state, _random_event(rng, state))
        assert all(isinstance(c, executable) for c in commands)

    assert {t.name for t in CommandType} == {
        "START_PROVIDER",
        "STOP_PROVIDER",
        "SCHEDULE_RECONNECT",
        "RELAY_MESSAGE",
        "LOG_EVENT",
    }
