"""AES-256-GCM codec for PHI fields, keyed by the deployment's long-term key."""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.encryption import wire
from app.encryption.base import BaseCodec
from app.encryption.exceptions import (
    AuthenticationFailure,
    EncryptionConfigurationError,
    MalformedInputError,
)
from app.logging.logger import Log


class AesGcmCodec(BaseCodec):
    """Backend codec built on the one-shot AESGCM AEAD API.

    ``AESGCM.encrypt`` returns ``ciphertext || tag``, so prefixing the nonce
    yields the wire layout directly.
    """

    def __init__(self, encoded_key: str) -> None:
        self._aead: AESGCM | None = None
        self._config_error = ""
        try:
            self._aead = AESGCM(wire.decode_key(encoded_key))
        except ValueError as exc:
            self._config_error = str(exc)

    def is_configured(self) -> bool:
        return self._aead is not None

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        aead = self._require_key()
        nonce = os.urandom(wire.NONCE_LENGTH)
        sealed = aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        blob = wire.pack(nonce, sealed[: -wire.TAG_LENGTH], sealed[-wire.TAG_LENGTH :])
        Log.debug(f"Encrypted {len(plaintext)} chars into {len(blob)}-char blob")
        return blob

    def decrypt(self, blob: str) -> str:
        if not blob:
            return ""
        aead = self._require_key()
        parts = wire.unpack(blob)
        try:
            plaintext = aead.decrypt(parts.nonce, parts.ciphertext + parts.tag, None)
        except InvalidTag as exc:
            raise AuthenticationFailure(
                "Authentication tag mismatch: data was tampered with or the key is wrong"
            ) from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedInputError("Decrypted value is not valid UTF-8") from exc

    def _require_key(self) -> AESGCM:
        if self._aead is None:
            raise EncryptionConfigurationError(
                f"Encryption is not configured: {self._config_error}"
            )
        return self._aead
