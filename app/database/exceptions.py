class RecordStoreError(Exception):
    """Base exception for record store failures."""


class RecordNotFoundError(RecordStoreError):
    """Raised when no record with the given id exists."""
