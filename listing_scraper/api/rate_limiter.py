"""Per-client request rate limiting for the HTTP API."""

import asyncio
import logging
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)


class ClientRateLimiter:
    """Sliding-window limiter: at most ``points`` requests per ``duration`` seconds per key.

    Clients whose window has fully expired are dropped, at most once per
    ``duration``, so state only covers recently active clients.
    """

    def __init__(
        self,
        points: int,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.points = points
        self.duration = duration
        self._clock = clock
        self._last_sweep: Optional[float] = None
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self.locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def consume(self, key: str) -> float:
        """
        Record a request for ``key``.

        Returns:
            0.0 if the request is allowed, otherwise seconds until it would be
        """
        self._evict_idle(self._clock())

        async with self.locks[key]:
            now = self._clock()
            window = self.requests[key]

            while window and now - window[0] >= self.duration:
                window.popleft()

            if len(window) >= self.points:
                retry_after = self.duration - (now - window[0])
                logger.info(f"Rate limit hit for {key}; retry in {retry_after:.1f}s")
                return max(retry_after, 0.0)

            window.append(now)
            return 0.0

    def _evict_idle(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self.duration:
            return
        self._last_sweep = now

        idle = [
            key for key, window in self.requests.items()
            if not window or now - window[-1] >= self.duration
        ]
        for key in idle:
            lock = self.locks.get(key)
            if lock is not None and lock.locked():
                continue
            self.requests.pop(key, None)
            self.locks.pop(key, None)

        if idle:
            logger.debug(f"Evicted {len(idle)} idle rate-limit clients")

    def reset(self, key: Optional[str] = None) -> None:
        """Forget recorded requests for one key, or all keys."""
        if key is None:
            self.requests.clear()
            self.locks.clear()
            self._last_sweep = None
        else:
            self.requests.pop(key, None)
            self.locks.pop(key, None)
