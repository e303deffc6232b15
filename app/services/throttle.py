"""
Per-key sliding-window throttle for durable function runs.
"""
import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict

logger = logging.getLogger(__name__)


class Throttle:
    """
    Allow at most `limit` run starts per `period` seconds for each key.

    Excess runs are delayed until a slot frees up, never rejected. Keys with
    no start left in the window are forgotten.
    """

    def __init__(
        self,
        limit: int = 3,
        period: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if limit < 1:
            raise ValueError('limit must be at least 1')
        self.limit = limit
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._starts: Dict[str, Deque[float]] = {}

    def reserve(self, key: str) -> float:
        """
        Claim the next start slot for key.

        Returns the delay in seconds before the caller may start.
        """
        now = self._clock()
        self._forget_idle(now)
        starts = self._starts.setdefault(key, deque())
        while starts and starts[0] <= now - self.period:
            starts.popleft()

        if len(starts) < self.limit:
            start_at = now
        else:
            # The slot frees when the start `limit` places back leaves the window
            start_at = max(now, starts[-self.limit] + self.period)
        starts.append(start_at)
        return start_at - now

    async def acquire(self, key: str):
        """Wait for a start slot."""
        delay = self.reserve(key)
        if delay > 0:
            logger.info('Throttling %s for %.1fs', key, delay)
            await self._sleep(delay)

    def _forget_idle(self, now: float):
        cutoff = now - self.period
        idle = [key for key, starts in self._starts.items() if not starts or starts[-1] <= cutoff]
        for key in idle:
            del self._starts[key]
