"""
chaintrack.services.throttle - Rolling-window request limiter
===============================================================

Torn allows a fixed number of requests per key per rolling minute.  Callers
``await limiter.acquire()`` before every request and are suspended until a
slot frees up, rather than being rejected.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RollingWindowLimiter:
    """Allow at most ``max_requests`` acquisitions per ``window`` seconds.

    - Timestamps of granted slots are kept oldest-first.
    - When the window is full, the caller sleeps until the oldest slot
      expires, then re-checks.
    - Acquisitions are serialized with a lock so concurrent fetches from
      ``asyncio.gather`` cannot both take the last slot.
    """

    def __init__(
        self,
        max_requests: int = 50,
        window: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _purge(self, now: float) -> None:
        cutoff = now - self.window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        """Number of slots currently counted against the window."""
        self._purge(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        """Wait for a free slot and claim it."""
        async with self._lock:
            now = self._clock()
            self._purge(now)
            while len(self._timestamps) >= self.max_requests:
                remaining = self._timestamps[0] + self.window - now
                logger.info("Rate limit reached, waiting %.1fs for a free slot", remaining)
                await self._sleep(max(remaining, 0))
                now = self._clock()
                self._purge(now)
            self._timestamps.append(now)
