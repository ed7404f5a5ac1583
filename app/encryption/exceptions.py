class EncryptionError(Exception):
    """Base exception for all encryption errors."""


class EncryptionConfigurationError(EncryptionError):
    """Raised when the encryption key is missing or invalid."""


class MalformedInputError(EncryptionError):
    """Raised when a blob is not valid base64, too short, or not UTF-8 after decryption."""


class AuthenticationFailure(EncryptionError):
    """Raised when the GCM tag does not verify (tampered data or wrong key)."""
