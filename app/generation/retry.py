"""Retry policy for calls to the text generation provider.

Two independent mechanisms:

* model fallback: on ``ModelUnavailableError`` the next identifier in
  ``model_ids`` is tried immediately, without consuming retry budget;
* retry with backoff: retryable failures (rate limit, 5xx, network, timeout)
  are retried up to ``max_retries`` times, sleeping
  ``min(base_delay * 2**attempt, max_delay)`` before attempt ``attempt + 1``.

Anything else fails immediately.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from app.generation.exceptions import (
    GenerationError,
    GenerationRetryExhaustedError,
    ModelUnavailableError,
)
from app.logging.logger import Log

Sleep = Callable[[float], Awaitable[None]]


def classify(exc: BaseException) -> bool:
    """Return True if *exc* is worth retrying."""
    if isinstance(exc, GenerationError):
        return exc.retryable
    return isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TransportError))


@dataclass
class RetryPolicy:
    """Capped exponential backoff plus an ordered list of acceptable models."""

    model_ids: tuple[str, ...]
    max_retries: int = 4
    base_delay: float = 1.0
    max_delay: float = 8.0
    sleep: Sleep = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        if not self.model_ids:
            raise ValueError("RetryPolicy requires at least one model id")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def execute(
        self,
        call: Callable[[str], Awaitable[str]],
        operation: str = "generate",
    ) -> str:
        """Run ``call(model_id)`` under the policy and return its result.

        Raises:
            ModelUnavailableError: if every model id is unavailable.
            GenerationRetryExhaustedError: after ``max_retries + 1`` retryable failures.
            Exception: any non-retryable error, unchanged.
        """
        model_index = 0
        retries_used = 0
        while True:
            model_id = self.model_ids[model_index]
            try:
                return await call(model_id)
            except ModelUnavailableError:
                if model_index + 1 >= len(self.model_ids):
                    raise
                model_index += 1
                Log.warning(
                    f"{operation}: model '{model_id}' unavailable, "
                    f"falling back to '{self.model_ids[model_index]}'"
                )
            except Exception as exc:
                if not classify(exc):
                    Log.error(f"{operation}: non-retryable error {exc.__class__.__name__}")
                    raise
                if retries_used >= self.max_retries:
                    attempts = retries_used + 1
                    Log.error(f"{operation}: all {attempts} attempts failed")
                    raise GenerationRetryExhaustedError(
                        f"Generation failed after {attempts} attempts: {exc}",
                        attempts=attempts,
                    ) from exc
                delay = self.delay_for(retries_used)
                retries_used += 1
                Log.warning(
                    f"{operation}: {exc.__class__.__name__} "
                    f"(attempt {retries_used}/{self.max_retries + 1}), retrying in {delay:.2f}s"
                )
                await self.sleep(delay)
