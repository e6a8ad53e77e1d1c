"""Turn clock for one command presentation.

`Countdown` keeps an explicit IDLE/RUNNING/PAUSED/STOPPED state and drives
progress ticks through a `Scheduler`. The default scheduler uses
`threading.Timer`; tests pass a manual scheduler and a fake clock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

BASE_TIMES = (5.0, 3.0, 2.0, 1.5, 1.2, 1.0)
MIN_COMPLEXITY = 1.0
MAX_COMPLEXITY = 2.0
TICK_INTERVAL = 0.05

Clock = Callable[[], float]
TickFn = Callable[[float], None]
CompleteFn = Callable[[], None]


def base_time(level: int) -> float:
    """Return base seconds allowed at a level (clamped to 0..5)."""
    return BASE_TIMES[max(0, min(len(BASE_TIMES) - 1, level))]


def all_base_times() -> list[float]:
    """Return a copy of the per-level base time table."""
    return list(BASE_TIMES)


def time_limit(level: int, complexity: float) -> float:
    """Return seconds allowed for a command given its level and complexity."""
    clamped = max(MIN_COMPLEXITY, min(MAX_COMPLEXITY, complexity))
    return base_time(level) * clamped


class Cancellable(Protocol):
    """Handle for scheduled work."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class ThreadScheduler:
    """Scheduler backed by daemon `threading.Timer` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Start a one-shot timer thread."""
        handle = threading.Timer(delay, callback)
        handle.daemon = True
        handle.start()
        return handle


class TimerStatus(Enum):
    """Lifecycle of a countdown."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class Countdown:
    """Cancelable, pausable countdown with periodic ticks and one completion event."""

    def __init__(
        self,
        duration: float,
        on_tick: TickFn | None = None,
        on_complete: CompleteFn | None = None,
        *,
        tick_interval: float = TICK_INTERVAL,
        clock: Clock = time.monotonic,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._total = float(duration)
        self._on_tick = on_tick
        self._on_complete = on_complete
        self._tick_interval = tick_interval
        self._clock = clock
        self._scheduler = scheduler or ThreadScheduler()

        self._lock = threading.RLock()
        self._status = TimerStatus.IDLE
        self._started_at = 0.0
        self._elapsed_before_pause = 0.0
        self._handle: Cancellable | None = None
        # Bumped whenever the tick chain is replaced or cancelled; stale ticks compare against it.
        self._generation = 0
        self._completion_pending = False

    @property
    def status(self) -> TimerStatus:
        with self._lock:
            return self._status

    @property
    def total(self) -> float:
        with self._lock:
            return self._total

    def start(self) -> None:
        """Start from the full duration, or resume after `pause()`."""
        with self._lock:
            if self._status in (TimerStatus.RUNNING, TimerStatus.STOPPED):
                return
            if self._status is TimerStatus.IDLE:
                self._elapsed_before_pause = 0.0
            self._started_at = self._clock()
            self._status = TimerStatus.RUNNING
            generation = self._replace_chain()
        self._tick(generation)

    def pause(self) -> None:
        """Freeze remaining time until the next `start()`."""
        with self._lock:
            if self._status is not TimerStatus.RUNNING:
                return
            self._elapsed_before_pause += self._clock() - self._started_at
            self._status = TimerStatus.PAUSED
            self._replace_chain()

    def stop(self) -> None:
        """End the countdown for good; no further callbacks fire."""
        with self._lock:
            self._status = TimerStatus.STOPPED
            self._completion_pending = False
            self._replace_chain()

    def remaining(self) -> float:
        """Return seconds left, never negative."""
        with self._lock:
            return self._remaining_locked()

    def is_active(self) -> bool:
        """Return True while counting down."""
        with self._lock:
            return self._status is TimerStatus.RUNNING

    def is_paused(self) -> bool:
        """Return True only after an explicit pause."""
        with self._lock:
            return self._status is TimerStatus.PAUSED

    def add_time(self, delta: float) -> None:
        """Extend (or shorten, with a negative delta) the countdown; remaining time floors at 0."""
        with self._lock:
            self._total = max(self._total + delta, self._elapsed_locked())

    def _elapsed_locked(self) -> float:
        elapsed = self._elapsed_before_pause
        if self._status is TimerStatus.RUNNING:
            elapsed += self._clock() - self._started_at
        return elapsed

    def _remaining_locked(self) -> float:
        if self._status is TimerStatus.STOPPED:
            return 0.0
        return max(0.0, self._total - self._elapsed_locked())

    def _replace_chain(self) -> int:
        """Cancel pending tick work and return the new chain generation."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1
        return self._generation

    def _tick(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._status is not TimerStatus.RUNNING:
                return
            remaining = self._remaining_locked()
            expired = remaining <= 0
            if expired:
                self._status = TimerStatus.STOPPED
                self._completion_pending = True
                self._replace_chain()

        if self._on_tick is not None:
            self._on_tick(remaining)

        if expired:
            with self._lock:
                fire = self._completion_pending
                self._completion_pending = False
            if fire:
                logger.debug("Countdown of %.2fs expired", self._total)
                if self._on_complete is not None:
                    self._on_complete()
            return

        with self._lock:
            if generation == self._generation and self._status is TimerStatus.RUNNING:
                self._handle = self._scheduler.call_later(self._tick_interval, lambda: self._tick(generation))
