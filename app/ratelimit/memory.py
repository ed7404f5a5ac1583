import asyncio
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from app.logging.logger import Log
from app.ratelimit.base import BaseRateLimiter, RateLimitDecision


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter(BaseRateLimiter):
    """Process-local fixed-window limiter.

    Expired windows are dropped once they are ``cleanup_buffer_seconds`` past
    their reset time. When the store reaches ``max_size`` a cleanup runs and,
    if that is not enough, the oldest fifth of the windows is evicted.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        max_size: int = 50000,
        cleanup_buffer_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(max_requests, window_seconds)
        self._max_size = max_size
        self._cleanup_buffer_seconds = cleanup_buffer_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def check(self, key: str) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            if len(self._windows) >= self._max_size and key not in self._windows:
                self._force_cleanup(now)

            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self._window_seconds)
                return RateLimitDecision(allowed=True, remaining=self._max_requests - 1)

            if window.count >= self._max_requests:
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    retry_after_seconds=math.ceil(window.reset_at - now),
                )

            window.count += 1
            return RateLimitDecision(allowed=True, remaining=self._max_requests - window.count)

    def cleanup(self) -> int:
        """Drop expired windows and return how many were removed."""
        return self._cleanup(self._clock())

    def _cleanup(self, now: float) -> int:
        expired = [
            key
            for key, window in self._windows.items()
            if now > window.reset_at + self._cleanup_buffer_seconds
        ]
        for key in expired:
            del self._windows[key]
        if expired:
            Log.info(f"Rate limiter cleanup removed {len(expired)} windows, {len(self._windows)} left")
        return len(expired)

    def _force_cleanup(self, now: float) -> None:
        Log.warning(f"Rate limiter store reached max size {self._max_size}")
        self._cleanup(now)
        if len(self._windows) < self._max_size:
            return
        oldest = sorted(self._windows, key=lambda k: self._windows[k].reset_at)
        for key in oldest[: max(1, self._max_size // 5)]:
            del self._windows[key]
