"""Wire format shared by every codec that touches encrypted PHI fields.

    base64( nonce (12 bytes) || ciphertext || tag (16 bytes) )

Standard base64 alphabet with padding. This layout is a contract with every
other consumer of encrypted fields (session-key cipher, exports, UI): changing
it makes existing blobs undecryptable across that boundary.
"""

import base64
import binascii
from dataclasses import dataclass

from app.encryption.exceptions import MalformedInputError

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16
MIN_BLOB_LENGTH = NONCE_LENGTH + TAG_LENGTH


@dataclass(frozen=True)
class BlobParts:
    """Decoded blob split into its fields."""

    nonce: bytes
    ciphertext: bytes
    tag: bytes


def pack(nonce: bytes, ciphertext: bytes, tag: bytes) -> str:
    """Join the fields in wire order and base64-encode them."""
    return base64.b64encode(nonce + ciphertext + tag).decode("ascii")


def unpack(blob: str) -> BlobParts:
    """Decode *blob* and split it into nonce, ciphertext and tag.

    Raises:
        MalformedInputError: if *blob* is not base64 or decodes to < 28 bytes.
    """
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedInputError(f"Encrypted value is not valid base64: {exc}") from exc
    if len(raw) < MIN_BLOB_LENGTH:
        raise MalformedInputError(
            f"Encrypted value too short: {len(raw)} bytes (min {MIN_BLOB_LENGTH})"
        )
    return BlobParts(
        nonce=raw[:NONCE_LENGTH],
        ciphertext=raw[NONCE_LENGTH:-TAG_LENGTH],
        tag=raw[-TAG_LENGTH:],
    )


def decode_key(encoded: str) -> bytes:
    """Decode a base64 256-bit key.

    Raises:
        ValueError: if *encoded* is empty, not base64, or not 32 bytes long.
    """
    if not encoded:
        raise ValueError("Encryption key is not set")
    try:
        key = base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise ValueError("Encryption key must be base64-encoded") from exc
    if len(key) != KEY_LENGTH:
        raise ValueError(f"Encryption key must be {KEY_LENGTH} bytes, got {len(key)}")
    return key
