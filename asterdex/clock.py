"""
AsterDEX Client - Clock and Timers.

============================================================
RESPONSIBILITY
============================================================
Testable time sources and single-shot timers.

- Signing, rate limiting and stream timers read time from here
- MockClock and ManualScheduler make timing deterministic in tests
- No real sleeping happens inside the manual implementations

============================================================
"""

import asyncio
import heapq
import itertools
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the client clock."""

    @abstractmethod
    def timestamp(self) -> float:
        """Get current Unix timestamp in seconds."""
        pass

    def now_ms(self) -> int:
        """Current Unix time in milliseconds."""
        return int(self.timestamp() * 1000)


class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def timestamp(self) -> float:
        return time.time()


class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_ms: Optional[int] = None):
        """
        Initialize mock clock.

        Args:
            initial_ms: Starting Unix time in ms (defaults to current time)
        """
        self._ms = float(initial_ms if initial_ms is not None else int(time.time() * 1000))
        self._lock = threading.Lock()

    def timestamp(self) -> float:
        with self._lock:
            return self._ms / 1000

    def now_ms(self) -> int:
        with self._lock:
            return int(self._ms)

    def set_time_ms(self, value_ms: int) -> None:
        """Set the current time."""
        with self._lock:
            self._ms = float(value_ms)

    def advance(self, seconds: float = 0, ms: float = 0) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            ms: Number of milliseconds to advance
        """
        with self._lock:
            self._ms += seconds * 1000 + ms


# ============================================================
# TIMER SCHEDULING
# ============================================================

class TimerHandle:
    """Cancellable handle for a scheduled callback."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self._cancelled = False

    def cancel(self) -> None:
        """Cancel the timer. Safe to call more than once."""
        if not self._cancelled:
            self._cancelled = True
            self._cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class SchedulerProtocol(ABC):
    """Schedules single-shot callbacks after a delay in ms."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay_ms."""
        pass


class LoopScheduler(SchedulerProtocol):
    """Production scheduler backed by the running asyncio loop."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = loop.call_later(max(delay_ms, 0) / 1000, callback)
        return TimerHandle(handle.cancel)


class ManualScheduler(SchedulerProtocol):
    """
    Scheduler driven explicitly by tests.

    Callbacks fire only from advance(), in due-time order, with ties
    broken by scheduling order.
    """

    def __init__(self, clock: Optional[MockClock] = None):
        """
        Initialize manual scheduler.

        Args:
            clock: Optional MockClock advanced in step with the scheduler
        """
        self._now_ms = 0.0
        self._clock = clock
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._cancelled: set = set()

    @property
    def now_ms(self) -> float:
        return self._now_ms

    @property
    def pending(self) -> int:
        """Number of timers that have not fired or been cancelled."""
        return sum(1 for _, seq, _ in self._queue if seq not in self._cancelled)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        seq = next(self._counter)
        heapq.heappush(self._queue, (self._now_ms + max(delay_ms, 0), seq, callback))
        return TimerHandle(lambda: self._cancelled.add(seq))

    def advance(self, ms: float) -> int:
        """
        Move time forward, firing every timer that becomes due.

        Args:
            ms: Milliseconds to advance

        Returns:
            Number of callbacks fired
        """
        target = self._now_ms + ms
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, seq, callback = heapq.heappop(self._queue)
            if seq in self._cancelled:
                self._cancelled.discard(seq)
                continue
            self._step_to(due)
            callback()
            fired += 1
        self._step_to(target)
        return fired

    def _step_to(self, value_ms: float) -> None:
        if self._clock is not None:
            self._clock.advance(ms=value_ms - self._now_ms)
        self._now_ms = value_ms


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "TimerHandle",
    "SchedulerProtocol",
    "LoopScheduler",
    "ManualScheduler",
]
