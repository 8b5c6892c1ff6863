"""
Fixed-window request rate limiting.

Counters live in process memory, so each worker process keeps its own
table. A multi-instance deployment needs a shared counter behind the
same ``check`` interface.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from identity_service.core.logging import logger


@dataclass
class RateLimitWindow:
    """Counter state for a single key."""

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    retry_after_seconds: int = 0


class FixedWindowRateLimiter:
    """Counts requests per key inside a fixed window and denies anything past ``max_requests``."""

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def check(self, key: str) -> RateLimitDecision:
        """Record a request for ``key`` and decide whether it may proceed."""
        now = self._clock()
        window = self._windows.get(key)

        if window is None or now > window.reset_at:
            window = RateLimitWindow(count=1, reset_at=now + self.window_seconds)
            self._windows[key] = window
        else:
            window.count += 1

        if window.count > self.max_requests:
            retry_after = max(1, math.ceil(window.reset_at - now))
            logger.warning(f"Rate limit '{self.name}' exceeded for {key} (retry in {retry_after}s)")
            return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

        return RateLimitDecision(allowed=True)

    def sweep(self) -> int:
        """Drop every window that has already elapsed. Returns the number removed."""
        now = self._clock()
        expired = [key for key, window in self._windows.items() if window.reset_at < now]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)

    def start_sweeper(self, interval_seconds: float) -> None:
        """Start the periodic purge on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval_seconds))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug(f"Rate limit '{self.name}' purged {removed} expired window(s)")
