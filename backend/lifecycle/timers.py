"""
Cancellable timer infrastructure.

Responsibilities:
- Schedule a callback after a delay
- Replace / cancel timers by id (idempotent)

Non-responsibilities:
- NO state machine decisions
- NO knowledge of which event a timer produces

The runtime depends on the Scheduler protocol only, so tests can swap in a
manual clock.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol


TimerCallback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: TimerCallback) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop."""

    def call_later(self, delay_s: float, callback: TimerCallback) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay_s, callback)


class TimerRegistry:
    """
    Named timers on top of a Scheduler.

    Lifecycle:
    1. start(timer_id, ...) cancels any pending timer with that id
    2. The callback fires once, after which the id is free again
    3. cancel(timer_id) / clear_all() drop pending timers
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._handles: dict[str, TimerHandle] = {}

    def start(self, timer_id: str, delay_ms: int, callback: TimerCallback) -> None:
        """Start or replace a timer."""
        self.cancel(timer_id)

        def _fire() -> None:
            self._handles.pop(timer_id, None)
            callback()

        self._handles[timer_id] = self._scheduler.call_later(delay_ms / 1000.0, _fire)

    def cancel(self, timer_id: str) -> bool:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: returns False when nothing was pending.
        """
        handle = self._handles.pop(timer_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self) -> frozenset[str]:
        return frozenset(self._handles)

    def clear_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
