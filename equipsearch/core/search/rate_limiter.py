from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Awaitable, Callable

from equipsearch.common.logging import get_logger

logger = get_logger("search.rate_limiter")

MIN_POLL_SECONDS = 0.005


class TokenBucket:
    """Token bucket shared by every outbound call to the search index.

    Tokens are refilled lazily when someone tries to take one, never by a
    background timer. Refill and decrement happen in one synchronous block so
    interleaved coroutines cannot double-spend a token.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._tokens: int | None = None
        self._last_refill = 0.0

    @property
    def tokens(self) -> int:
        return self._tokens or 0

    def reset(self) -> None:
        self._tokens = None
        self._last_refill = 0.0

    def try_acquire(self, max_per_second: float) -> bool:
        capacity = max(1, int(max_per_second))
        interval = 1.0 / capacity
        now = self._clock()

        if self._tokens is None:
            # first use starts with a full bucket
            self._tokens = capacity
            self._last_refill = now

        elapsed = now - self._last_refill
        refill = math.floor(elapsed / interval)
        if refill > 0:
            self._tokens = min(capacity, self._tokens + refill)
            self._last_refill = now - (elapsed % interval)

        if self._tokens > 0:
            self._tokens -= 1
            return True
        return False

    async def acquire(self, max_per_second: float) -> float:
        """Wait until a token is available; returns seconds spent waiting."""
        capacity = max(1, int(max_per_second))
        poll = max(MIN_POLL_SECONDS, (1.0 / capacity) / 4)
        started = self._clock()
        while not self.try_acquire(capacity):
            await self._sleep(poll)
        waited = self._clock() - started
        if waited > 0:
            logger.debug("Rate limiter wait=%.3fs capacity=%d", waited, capacity)
        return waited
