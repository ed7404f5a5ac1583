class ProcessorError(Exception):
    """Base exception for all note generation request errors."""


class RateLimitExceededError(ProcessorError):
    """Raised when a user exceeds the generation request rate."""

    def __init__(self, message: str, retry_after_seconds: int = 0) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class EmptySourceError(ProcessorError):
    """Raised when no usable transcript or note text is available."""


class NoSectionsError(ProcessorError):
    """Raised when a request names no sections to generate."""


class InvalidRequestError(ProcessorError):
    """Raised when a generation request payload is malformed."""


class NoCompletedNotesError(ProcessorError):
    """Raised when a session has no completed note to summarize."""
