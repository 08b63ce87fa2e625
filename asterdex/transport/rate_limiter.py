"""
AsterDEX Client - Rate Limiter.

============================================================
PURPOSE
============================================================
Sliding-window admission gate shared by all calls of one client.

- At most max_requests timestamps inside the trailing window
- Expired entries pruned lazily on every check
- wait_until_ready() suspends until a slot frees up

============================================================
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Any, Optional

from asterdex.clock import ClockProtocol, SystemClock
from asterdex.constants import MAX_REQUESTS_PER_MINUTE, RATE_LIMIT_WINDOW_MS


logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window request counter."""

    def __init__(
        self,
        max_requests: int = MAX_REQUESTS_PER_MINUTE,
        window_ms: int = RATE_LIMIT_WINDOW_MS,
        clock: Optional[ClockProtocol] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Requests admitted per window
            window_ms: Window length in ms
            clock: Time source
            sleep: Coroutine taking seconds (defaults to asyncio.sleep)
        """
        if max_requests <= 0 or window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")

        self._max_requests = max_requests
        self._window_ms = window_ms
        self._clock = clock or SystemClock()
        self._sleep = sleep or asyncio.sleep
        self._timestamps: Deque[int] = deque()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def _prune(self, now: int) -> None:
        cutoff = now - self._window_ms
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def can_make_request(self) -> bool:
        """Whether a request would be admitted now."""
        self._prune(self._clock.now_ms())
        return len(self._timestamps) < self._max_requests

    def record_request(self) -> None:
        """Record an admitted request."""
        now = self._clock.now_ms()
        self._prune(now)
        self._timestamps.append(now)

    def get_time_until_reset(self) -> int:
        """Milliseconds until the oldest entry leaves the window."""
        now = self._clock.now_ms()
        self._prune(now)
        if not self._timestamps:
            return 0
        return max(0, self._timestamps[0] + self._window_ms - now)

    async def wait_until_ready(self) -> None:
        """Suspend until can_make_request() would return True."""
        while not self.can_make_request():
            wait_ms = max(self.get_time_until_reset(), 1)
            logger.warning(f"Rate limit reached, waiting {wait_ms}ms")
            await self._sleep(wait_ms / 1000)

    def reset(self) -> None:
        """Clear the window."""
        self._timestamps.clear()

    def get_status(self) -> Dict[str, Any]:
        """Current window usage."""
        now = self._clock.now_ms()
        self._prune(now)
        return {
            "used": len(self._timestamps),
            "limit": self._max_requests,
            "window_ms": self._window_ms,
            "reset_in_ms": self.get_time_until_reset(),
        }
