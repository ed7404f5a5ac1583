"""Session-scoped cipher for contexts that never see the long-term key.

Maintained independently of :mod:`app.encryption.codec`: it drives the
streaming ``Cipher(AES, GCM)`` primitive and frames blobs itself. The only
thing the two share is the byte layout ``nonce(12) || ciphertext || tag(16)``
(base64), which the parity tests pin down.
"""

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from app.encryption.base import BaseCodec
from app.encryption.exceptions import (
    AuthenticationFailure,
    EncryptionConfigurationError,
    MalformedInputError,
)

_IV_BYTES = 12
_TAG_BYTES = 16
_KEY_BYTES = 32


class SessionCipher(BaseCodec):
    """AES-256-GCM cipher holding an ephemeral, session-scoped key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != _KEY_BYTES:
            raise EncryptionConfigurationError(
                f"Session key must be {_KEY_BYTES} bytes, got {len(key)}"
            )
        self._key = key

    @classmethod
    def generate(cls) -> "SessionCipher":
        """Create a cipher with a fresh random key."""
        return cls(secrets.token_bytes(_KEY_BYTES))

    @classmethod
    def from_base64(cls, encoded: str) -> "SessionCipher":
        try:
            return cls(base64.b64decode(encoded, validate=True))
        except binascii.Error as exc:
            raise EncryptionConfigurationError("Session key must be base64-encoded") from exc

    def export_key(self) -> str:
        return base64.b64encode(self._key).decode("ascii")

    def is_configured(self) -> bool:
        return True

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        iv = secrets.token_bytes(_IV_BYTES)
        encryptor = Cipher(algorithms.AES(self._key), modes.GCM(iv)).encryptor()
        body = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()
        return base64.b64encode(b"".join((iv, body, encryptor.tag))).decode("ascii")

    def decrypt(self, blob: str) -> str:
        if not blob:
            return ""
        try:
            raw = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedInputError(f"Encrypted value is not valid base64: {exc}") from exc
        if len(raw) < _IV_BYTES + _TAG_BYTES:
            raise MalformedInputError(f"Encrypted value too short: {len(raw)} bytes")

        view = memoryview(raw)
        iv, body, tag = view[:_IV_BYTES], view[_IV_BYTES:-_TAG_BYTES], view[-_TAG_BYTES:]
        decryptor = Cipher(algorithms.AES(self._key), modes.GCM(bytes(iv), bytes(tag))).decryptor()
        try:
            plaintext = decryptor.update(bytes(body)) + decryptor.finalize()
        except InvalidTag as exc:
            raise AuthenticationFailure("Authentication tag mismatch") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedInputError("Decrypted value is not valid UTF-8") from exc
