from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class BaseRateLimiter(ABC):
    """Fixed-window request limiter keyed by caller."""

    def __init__(self, max_requests: int, window_seconds: float) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    @abstractmethod
    async def check(self, key: str) -> RateLimitDecision:
        """Count one request for *key* and return whether it is allowed."""

    async def allow(self, key: str) -> bool:
        decision = await self.check(key)
        return decision.allowed
