class GenerationError(Exception):
    """Raised when text generation fails.

    ``retryable`` tells the retry policy whether another attempt may succeed.
    """

    retryable: bool = False


class GenerationRateLimitError(GenerationError):
    """Raised when the provider signals a rate limit (HTTP 429)."""

    retryable = True


class GenerationServerError(GenerationError):
    """Raised on 5xx-class provider errors."""

    retryable = True


class GenerationNetworkError(GenerationError):
    """Raised when the provider call fails due to network issues or a timeout."""

    retryable = True


class ModelUnavailableError(GenerationError):
    """Raised when the requested model identifier does not exist or is not available."""


class GenerationConfigurationError(GenerationError):
    """Raised on missing credentials or an unknown provider; never retried."""


class GenerationRetryExhaustedError(GenerationError):
    """Raised when every allowed attempt failed with a retryable error."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
