from abc import ABC, abstractmethod


class BaseCodec(ABC):
    """Contract for authenticated encryption of text fields."""

    @abstractmethod
    def encrypt(self, plaintext: str) -> str:
        """Encrypt *plaintext* into a wire-format blob.

        An empty string encrypts to an empty string.

        Raises:
            EncryptionConfigurationError: if no usable key is configured.
        """

    @abstractmethod
    def decrypt(self, blob: str) -> str:
        """Decrypt a wire-format blob.

        An empty string decrypts to an empty string.

        Raises:
            EncryptionConfigurationError: if no usable key is configured.
            MalformedInputError: if *blob* is not decodable or too short.
            AuthenticationFailure: if the tag does not verify.
        """

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether a usable key is available."""
