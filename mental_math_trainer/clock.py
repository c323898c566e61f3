from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class TaskHandle:
    """Cancellable handle for a task registered with a scheduler."""

    def __init__(self, callback: Callable[[], None], *, due_at: float, interval_s: float | None) -> None:
        self._callback = callback
        self._due_at = float(due_at)
        self._interval_s = interval_s
        self._cancelled = False
        self._fired = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def repeating(self) -> bool:
        return self._interval_s is not None

    @property
    def fire_count(self) -> int:
        return self._fired

    @property
    def due_at(self) -> float:
        return self._due_at

    @property
    def active(self) -> bool:
        if self._cancelled:
            return False
        return self.repeating or self._fired == 0

    def cancel(self) -> None:
        self._cancelled = True

    def _fire(self) -> None:
        self._fired += 1
        if self._interval_s is not None:
            self._due_at += self._interval_s
        self._callback()


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TaskHandle: ...
    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TaskHandle: ...


class ClockScheduler:
    """Polled scheduler: tasks run from :meth:`pump`, never on their own.

    The UI frame loop (or a test) calls ``pump()``; every task whose due time
    has passed on the injected clock is fired in due-time order. A repeating
    task that fell several intervals behind fires once per missed interval so
    a slow frame cannot swallow timer ticks.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._tasks: list[TaskHandle] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TaskHandle:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        handle = TaskHandle(callback, due_at=self._clock.now() + float(delay_s), interval_s=None)
        self._tasks.append(handle)
        return handle

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TaskHandle:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        handle = TaskHandle(
            callback,
            due_at=self._clock.now() + float(interval_s),
            interval_s=float(interval_s),
        )
        self._tasks.append(handle)
        return handle

    def pending(self) -> int:
        return sum(1 for t in self._tasks if t.active)

    def pump(self) -> int:
        """Fire everything that is due. Returns the number of callbacks run."""

        now = self._clock.now()
        fired = 0
        while True:
            due = [t for t in self._tasks if t.active and t.due_at <= now]
            if not due:
                break
            # Callbacks may cancel or schedule other tasks; re-scan after each one.
            task = min(due, key=lambda t: t.due_at)
            task._fire()
            fired += 1
        self._tasks = [t for t in self._tasks if t.active]
        return fired
