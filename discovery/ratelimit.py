"""Per-source rate limiter.

Admits at most ``rate`` operations per ``per`` seconds with no slack: each
admission is scheduled exactly one interval after the previous one, so idle
time never turns into burst credit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Leaky-bucket limiter shared by all concurrent instances of one source."""

    def __init__(
        self,
        rate: float,
        per: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], "asyncio.Future"] = asyncio.sleep,
    ):
        if rate <= 0 or per <= 0:
            raise ValueError("rate and per must be positive")
        self.rate = rate
        self.per = per
        self.interval = per / rate
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._next_slot: Optional[float] = None
        self.acquired = 0

    async def acquire(self) -> None:
        """Wait until the caller is permitted to proceed."""
        # The slot is reserved under the lock; the wait happens outside it so
        # callers are admitted in reservation order.
        async with self._lock:
            now = self._clock()
            if self._next_slot is None or self._next_slot <= now:
                slot = now
            else:
                slot = self._next_slot
            self._next_slot = slot + self.interval
            self.acquired += 1

        delay = slot - now
        if delay > 0:
            await self._sleep(delay)

    def __repr__(self) -> str:
        return f"RateLimiter(rate={self.rate}, per={self.per})"
