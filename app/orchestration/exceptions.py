class OrchestrationError(Exception):
    """Base error for batch orchestration."""


class SupervisorClosedError(OrchestrationError):
    """Raised when a batch is submitted after shutdown began."""
