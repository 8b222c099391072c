"""
Fixed-interval gate for rate-limited third-party APIs.

One gate is shared by every worker that talks to the same provider, so the
spacing between calls holds no matter how many parcels are processed
concurrently.
"""

import asyncio
import time
from typing import Awaitable, Callable


class IntervalGate:
    """
    Guarantees at least ``min_interval`` seconds between successive
    ``acquire()`` returns across all callers.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._next_slot = None

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._next_slot is not None and now < self._next_slot:
                await self._sleep(self._next_slot - now)
                now = self._next_slot
            self._next_slot = now + self.min_interval

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False
