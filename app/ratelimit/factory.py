from app.config.settings import Settings
from app.ratelimit.base import BaseRateLimiter
from app.ratelimit.memory import InMemoryRateLimiter
from app.ratelimit.postgres import PostgresRateLimiter


class RateLimiterFactory:
    """Creates the rate limiter selected by ``rate_limit_backend``."""

    @staticmethod
    def create(settings: Settings) -> BaseRateLimiter:
        backend = settings.rate_limit_backend.lower()
        if backend == "memory":
            return InMemoryRateLimiter(
                settings.rate_limit_max_requests, settings.rate_limit_window_seconds
            )
        if backend == "postgres":
            return PostgresRateLimiter(
                settings.rate_limit_max_requests, settings.rate_limit_window_seconds
            )
        raise ValueError(f"Unknown rate limit backend: {settings.rate_limit_backend}")
