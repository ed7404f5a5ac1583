class AnonymizationError(Exception):
    """Base exception for anonymization errors."""


class AnonymizationMapError(AnonymizationError):
    """Raised when a persisted anonymization map cannot be restored."""
