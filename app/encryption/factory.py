from app.config.settings import Settings
from app.encryption.base import BaseCodec
from app.encryption.codec import AesGcmCodec
from app.encryption.exceptions import EncryptionConfigurationError


class CodecFactory:
    """Creates the backend codec from application settings."""

    @classmethod
    def create(cls, settings: Settings, *, require_key: bool = True) -> BaseCodec:
        """Create the AES-GCM codec keyed by ``encryption_key``.

        Raises:
            EncryptionConfigurationError: if *require_key* and the key is unusable.
        """
        codec = AesGcmCodec(settings.encryption_key)
        if require_key and not codec.is_configured():
            raise EncryptionConfigurationError(
                "ENCRYPTION_KEY must be a base64-encoded 32-byte key"
            )
        return codec
