"""Reading PHI fields written before the explicit "encrypted" flag existed.

New writes always store an explicit flag next to the field. Rows with a NULL
flag are classified with a shape heuristic; this is a migration aid only.
"""

import re
from dataclasses import dataclass

from app.encryption.base import BaseCodec
from app.encryption.exceptions import AuthenticationFailure, MalformedInputError
from app.logging.logger import Log

_BASE64_RE = re.compile(r"[A-Za-z0-9+/=]+")
_MIN_ENCRYPTED_LENGTH = 100


def looks_encrypted(value: str) -> bool:
    """Best-effort guess whether an unflagged *value* is a wire-format blob.

    Blobs are long, use only the base64 alphabet, and never contain ':' or a
    line break (both common in plaintext transcripts).
    """
    return (
        len(value) > _MIN_ENCRYPTED_LENGTH
        and _BASE64_RE.fullmatch(value) is not None
        and ":" not in value
        and "\n" not in value
    )


@dataclass(frozen=True)
class FieldValue:
    """A field value in plaintext plus how it was obtained.

    ``source`` is one of: empty, decrypted, plaintext, legacy_heuristic,
    legacy_plaintext.
    """

    text: str
    source: str


def read_field(
    value: str | None,
    encrypted: bool | None,
    codec: BaseCodec,
    record_id: str | int | None = None,
) -> FieldValue:
    """Return the plaintext of a stored PHI field.

    Args:
        value: Stored value (ciphertext or plaintext).
        encrypted: Explicit flag; ``None`` for legacy rows.
        codec: Codec holding the deployment key.
        record_id: Used in log messages only.

    Raises:
        MalformedInputError, AuthenticationFailure: when the flag says the value
        is encrypted but it does not decrypt.
    """
    if not value:
        return FieldValue(text="", source="empty")
    if encrypted is True:
        return FieldValue(text=codec.decrypt(value), source="decrypted")
    if encrypted is False or not looks_encrypted(value):
        return FieldValue(text=value, source="plaintext")

    try:
        text = codec.decrypt(value)
    except (MalformedInputError, AuthenticationFailure) as exc:
        Log.warning(
            "Legacy value looked encrypted but did not decrypt "
            f"({exc.__class__.__name__}); treating as plaintext",
            record_id=record_id,
        )
        return FieldValue(text=value, source="legacy_plaintext")

    # A heuristic hit that verifies is trusted, but left in the log so the
    # row's explicit flag can be backfilled.
    Log.warning(
        "Decrypted via legacy heuristic; explicit encrypted flag should be backfilled",
        record_id=record_id,
    )
    return FieldValue(text=text, source="legacy_heuristic")
