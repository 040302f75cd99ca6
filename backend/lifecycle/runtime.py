"""
Runtime execution shell for the connection lifecycle.

Responsibilities:
- Own the connection state
- Call the pure reducer
- Execute commands with side effects (providers, timers, relay, logs)
- Convert timer expiry and provider failures into events
- Keep every internal error inside the process

Non-responsibilities:
- Transition decisions (reducer)
- HTTP concerns (server package)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Callable, Coroutine

from lifecycle.commands import (
    Command,
    LogEvent,
    RelayMessage,
    ScheduleReconnect,
    StartProvider,
    StopProvider,
)
from lifecycle.events import (
    Event,
    EventType,
    InternalError,
    ProviderInitFailed,
    ReconnectDue,
    Start,
)
from lifecycle.reducer import reduce
from lifecycle.retry import RetryDelays
from lifecycle.runtime_context import (
    ProviderFactory,
    RelayProtocol,
    SessionProviderProtocol,
)
from lifecycle.state_dataclass import ConnectionState
from lifecycle.timers import AsyncioScheduler, Scheduler, TimerRegistry

from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class Runtime:
    """
    Runtime execution boundary for the bridge process.

    Responsibilities:
    - Own the authoritative ConnectionState
    - Act as the universal event sink (provider, timers, error hooks)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is called exactly once per processed event
    - State transitions are serialized (single writer under a lock)
    - State is swapped before any side effect of that event executes
    - Readers always see a complete, immutable ConnectionState
    - No exception escapes event processing
    """

    def __init__(
        self,
        *,
        provider_factory: ProviderFactory,
        relay: RelayProtocol,
        scheduler: Scheduler | None = None,
        delays: RetryDelays | None = None,
        initial_state: ConnectionState | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._provider_factory = provider_factory
        self._relay = relay
        self._delays = delays or RetryDelays()
        self._state = initial_state or ConnectionState()
        self._clock = clock

        self._timers = TimerRegistry(scheduler or AsyncioScheduler())
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue[Event] = asyncio.Queue()

        # Events raised while executing commands, processed before the lock
        # is released
        self._feedback: deque[Event] = deque()

        # generation -> provider instance
        self._providers: dict[int, SessionProviderProtocol] = {}

        self._tasks: set[asyncio.Task[Any]] = set()
        self._pump: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_handler: Any = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """
        Return the current immutable connection state.

        The returned object is a consistent snapshot; it is replaced, never
        modified, by later transitions.
        """
        return self._state

    @property
    def provider(self) -> SessionProviderProtocol | None:
        """Provider instance of the current generation, if one exists."""
        return self._providers.get(self._state.generation)

    @property
    def relay_configured(self) -> bool:
        return self._relay.is_configured()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Begin processing: install the loop error hook, start the event
        pump and request the first provider.
        """
        self._loop = asyncio.get_running_loop()
        self._previous_handler = self._loop.get_exception_handler()
        self._loop.set_exception_handler(self._on_loop_exception)

        if self._pump is None:
            self._pump = asyncio.create_task(self.run())

        await self.handle_event(Start(event_type=EventType.START, ts_ms=self._clock()))

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels timers, the pump and background tasks, then stops every
        provider still alive.
        """
        self._timers.clear_all()

        if self._loop is not None:
            self._loop.set_exception_handler(self._previous_handler)

        if self._pump is not None:
            self._pump.cancel()
            await asyncio.gather(self._pump, return_exceptions=True)
            self._pump = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        providers = list(self._providers.items())
        self._providers.clear()
        for generation, provider in providers:
            await self._stop_provider(generation, provider)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def submit(self, event: Event) -> None:
        """
        Queue an event for the single writer. Never blocks.

        This is the sink handed to providers and timers.
        """
        self._queue.put_nowait(event)

    def submit_threadsafe(self, event: Event) -> None:
        """Queue an event from a thread other than the event loop's."""
        if self._loop is None:
            raise RuntimeError("runtime not started")
        self._loop.call_soon_threadsafe(self.submit, event)

    async def run(self) -> None:
        """Event pump: drain the queue one event at a time, forever."""
        while True:
            event = await self._queue.get()
            try:
                await self.handle_event(event)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """
        Wait until the queue is empty and no background task is pending.

        Background tasks (provider start/stop) may queue further events, so
        both are awaited until neither has work left.
        """
        while True:
            await self._queue.join()
            pending = [task for task in self._tasks if not task.done()]
            if not pending and self._queue.empty():
                return
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the lifecycle pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new state
        3. Execute all emitted commands sequentially
        4. Process follow-up events produced by step 3

        This method holds the write lock for the whole sequence. It never
        raises: failures are logged and fed back as InternalError.
        """
        async with self._lock:
            self._feedback.append(event)
            while self._feedback:
                await self._process(self._feedback.popleft())

    async def _process(self, event: Event) -> None:
        try:
            new_state, commands = reduce(self._state, event, delays=self._delays)
            self._state = new_state

            for cmd in commands:
                await self._execute_command(cmd)

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": self._clock(),
                "event_type": "RUNTIME_EVENT_ERROR",
                "source_event": event.event_type.value,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            # An error while recording an error is logged only
            if not isinstance(event, InternalError):
                self._feedback.append(
                    InternalError(
                        event_type=EventType.INTERNAL_ERROR,
                        ts_ms=self._clock(),
                        reason=_describe(exc),
                    )
                )

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event(cmd.event)

        elif isinstance(cmd, StartProvider):
            self._start_provider(cmd.generation)

        elif isinstance(cmd, StopProvider):
            provider = self._providers.pop(cmd.generation, None)
            if provider is not None:
                self._spawn(self._stop_provider(cmd.generation, provider))

        elif isinstance(cmd, ScheduleReconnect):
            self._schedule_reconnect(
                timer_id=cmd.timer_id,
                delay_ms=cmd.delay_ms,
                generation=cmd.generation,
            )

        elif isinstance(cmd, RelayMessage):
            # Relay is fire-and-forget; a misbehaving relay must not stall
            # the lifecycle
            try:
                self._relay.relay(cmd.payload)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": self._clock(),
                    "event_type": "WEBHOOK_RELAY_FAILED",
                    "stage": "dispatch",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

        else:
            raise ValueError(f"Unknown command: {cmd!r}")

    def _start_provider(self, generation: int) -> None:
        """
        Construct the provider synchronously, start it in the background.

        Both failure modes surface as ProviderInitFailed; construction
        failures are handled before the write lock is released.
        """
        try:
            provider = self._provider_factory(generation, self.submit)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self._feedback.append(self._init_failed(generation, exc))
            return

        self._providers[generation] = provider
        log_event({
            "ts_ms": self._clock(),
            "event_type": "PROVIDER_START_EXECUTED",
            "generation": generation,
            "provider": type(provider).__name__,
        })

        async def _run_start() -> None:
            try:
                await provider.start()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self.submit(self._init_failed(generation, exc))

        self._spawn(_run_start())

    async def _stop_provider(
        self,
        generation: int,
        provider: SessionProviderProtocol,
    ) -> None:
        try:
            await provider.stop()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": self._clock(),
                "event_type": "PROVIDER_STOP_FAILED",
                "generation": generation,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return

        log_event({
            "ts_ms": self._clock(),
            "event_type": "PROVIDER_STOP_EXECUTED",
            "generation": generation,
        })

    def _schedule_reconnect(
        self,
        *,
        timer_id: str,
        delay_ms: int,
        generation: int,
    ) -> None:
        """
        Start or replace the recovery timer.

        The timer re-enters through submit(), keeping the single event
        entry point; the reducer drops it if the generation moved on.
        """

        def _fire() -> None:
            self.submit(
                ReconnectDue(
                    event_type=EventType.RECONNECT_DUE,
                    ts_ms=self._clock(),
                    generation=generation,
                )
            )

        self._timers.start(timer_id, delay_ms, _fire)
        log_event({
            "ts_ms": self._clock(),
            "event_type": "TIMER_SCHEDULED",
            "timer_id": timer_id,
            "delay_ms": delay_ms,
            "generation": generation,
        })

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _init_failed(self, generation: int, exc: BaseException) -> ProviderInitFailed:
        log_event({
            "ts_ms": self._clock(),
            "event_type": "PROVIDER_INIT_FAILED",
            "generation": generation,
            "exception": type(exc).__name__,
            "message": str(exc),
        })
        return ProviderInitFailed(
            event_type=EventType.PROVIDER_INIT_FAILED,
            ts_ms=self._clock(),
            generation=generation,
            reason=_describe(exc),
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_loop_exception(
        self,
        loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
    ) -> None:
        """
        Last-resort hook for errors nobody awaited (callbacks, orphan tasks).

        Recorded into the state; the process keeps running.
        """
        exc = context.get("exception")
        reason = _describe(exc) if exc is not None else str(context.get("message", "unknown"))

        log_event({
            "ts_ms": self._clock(),
            "event_type": "UNHANDLED_LOOP_ERROR",
            "exception": type(exc).__name__ if exc is not None else None,
            "message": reason,
        })
        self.submit(
            InternalError(
                event_type=EventType.INTERNAL_ERROR,
                ts_ms=self._clock(),
                reason=reason,
            )
        )
