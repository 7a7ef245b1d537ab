"""Trailing-edge debouncing of change events into restart triggers."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol

from devloop.types import RestartTrigger

if TYPE_CHECKING:
    from collections.abc import Callable

    from devloop.types import ChangeEvent

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus deferred callbacks, so debouncing can run on virtual time."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class ThreadingScheduler:
    """Monotonic clock with ``threading.Timer`` callbacks."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock for deterministic tests.

    Callbacks run synchronously from ``advance()`` in deadline order, with
    ``now()`` reporting each callback's own deadline while it runs.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self._now + delay, next(self._counter), handle, callback))
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that falls due."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            deadline, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = deadline
            callback()
        self._now = target

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)


class TriggerSlot:
    """Single-slot, coalescing handoff from the debouncer to the loop.

    Holds at most one pending trigger. A trigger put while another is pending
    is merged into it, so any burst during a restart collapses into one
    follow-up restart.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending: RestartTrigger | None = None
        self._closed = False

    def put(self, trigger: RestartTrigger) -> bool:
        """Store a trigger. Returns False if it was merged or the slot is closed."""
        with self._cond:
            if self._closed:
                return False
            if self._pending is None:
                self._pending = trigger
                self._cond.notify_all()
                return True
            self._pending = replace(
                self._pending, coalesced=self._pending.coalesced + trigger.coalesced
            )
            return False

    def take(self, timeout: float | None = None) -> RestartTrigger | None:
        """Remove and return the pending trigger, waiting up to ``timeout``."""
        with self._cond:
            if self._pending is None and not self._closed:
                self._cond.wait(timeout)
            trigger, self._pending = self._pending, None
            return trigger

    def discard(self) -> RestartTrigger | None:
        with self._cond:
            trigger, self._pending = self._pending, None
            return trigger

    def close(self) -> None:
        """Refuse further triggers and wake any waiter."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> bool:
        return self._pending is not None


class Debouncer:
    """
    Turn a burst of accepted events into one restart trigger.

    Every event cancels the armed timer and schedules a new one ``window``
    seconds later. The trigger fires only when a window passes with no new
    event. Each arm gets a generation number so a timer callback that lost a
    race with a reschedule is ignored.
    """

    def __init__(
        self,
        window: float,
        on_trigger: Callable[[RestartTrigger], object],
        scheduler: Scheduler | None = None,
    ) -> None:
        if window <= 0:
            raise ValueError("Debounce window must be positive")
        self.window = window
        self.on_trigger = on_trigger
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()

        self._lock = threading.Lock()
        self._handle: Cancellable | None = None
        self._generation = 0
        self._last_event: ChangeEvent | None = None
        self._events_in_window = 0

    def submit(self, event: ChangeEvent) -> None:
        """Record an accepted event and restart the quiet-period timer."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._last_event = event
            self._events_in_window += 1
            self._handle = self.scheduler.call_later(self.window, lambda: self._fire(generation))

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._handle is None:
                return
            self._handle = None
            count, self._events_in_window = self._events_in_window, 0
            last = self._last_event
            trigger = RestartTrigger(raised_at=self.scheduler.now())

        logger.debug(
            "Debounce window closed after %d event(s), last: %s",
            count,
            last.path if last else None,
        )
        try:
            self.on_trigger(trigger)
        except Exception:
            logger.exception("Error delivering restart trigger")

    def cancel(self) -> None:
        """Disarm the timer and forget the current window."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._generation += 1
            self._events_in_window = 0

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def last_event(self) -> ChangeEvent | None:
        return self._last_event
