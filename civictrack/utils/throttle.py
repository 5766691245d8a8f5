"""
Request spacing for the ProPublica feed.

A recent-bills page is followed by one cosponsor request per bill; the
throttle spreads that run of requests out to
PROPUBLICA_RATE_LIMIT_PER_SECOND. Callers reserve the next free slot
under a lock and sleep outside it.
"""

import asyncio
import time
from typing import Callable


class RequestThrottle:
    """
    Keeps outbound requests at least ``1 / requests_per_second`` apart.

    Example:
        throttle = RequestThrottle(settings.feed.rate_limit_per_second)
        await throttle.wait()
        response = await client.get(path)
    """

    def __init__(self, requests_per_second: float, clock: Callable[[], float] = time.monotonic):
        if requests_per_second <= 0:
            raise ValueError(f"requests_per_second must be positive, got {requests_per_second}")

        self.interval = 1.0 / requests_per_second
        self._clock = clock
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Sleep until this caller's slot; returns the seconds slept."""
        async with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.interval

        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)
        return delay
