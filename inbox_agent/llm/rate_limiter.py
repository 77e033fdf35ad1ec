"""Sliding window rate limiter for model calls."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` acquisitions per ``window_seconds``.

    ``acquire`` waits until the oldest call in the window ages out, then
    checks again, since another caller may have taken the freed slot.

    Args:
        max_requests: Calls allowed per window
        window_seconds: Window length
        clock: Monotonic clock in seconds
        sleep: Awaitable sleep
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        self._evict(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        while True:
            now = self._clock()
            self._evict(now)
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return
            wait = self.window_seconds - (now - self._timestamps[0])
            logger.debug(f"Rate limit reached, waiting {wait:.2f}s")
            await self._sleep(wait)
