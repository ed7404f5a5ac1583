from datetime import datetime

from app.encryption.base import BaseCodec
from app.encryption.exceptions import EncryptionError
from app.encryption.legacy import read_field
from app.logging.logger import Log
from app.processor.models import SourceFragment

_KIND_ORDER = {"transcript": 0, "notes": 1}


def combine_sources(fragments: list[SourceFragment], codec: BaseCodec) -> str:
    """Decrypt and join session text: transcripts first, then notes.

    A fragment that is flagged encrypted but does not decrypt is dropped and
    logged; empty fragments are dropped silently.
    """
    ordered = sorted(fragments, key=lambda f: _KIND_ORDER.get(f.kind, len(_KIND_ORDER)))
    pieces: list[str] = []
    for fragment in ordered:
        try:
            value = read_field(fragment.text, fragment.encrypted, codec, fragment.record_id)
        except EncryptionError as exc:
            Log.error(
                f"Source {fragment.kind} failed to decrypt ({exc.__class__.__name__}), skipping",
                record_id=fragment.record_id,
            )
            continue
        if value.text.strip():
            pieces.append(value.text)

    combined = "\n\n".join(pieces)
    Log.info(f"Combined {len(pieces)} of {len(fragments)} source fragments, {len(combined)} chars")
    return combined


def combine_note_sections(notes: list[dict], codec: BaseCodec) -> str:
    """Decrypt the generated sections of *notes* into one text, note by note.

    Each note starts with a ``=== Заметка от <created_at> ===`` header and each
    section with ``### <name>``. Sections without content, or whose content
    does not decrypt, are left out.
    """
    parts: list[str] = []
    used = 0
    for note in notes:
        created_at = note.get("created_at")
        if isinstance(created_at, datetime):
            created_at = created_at.isoformat(timespec="minutes")
        body: list[str] = []
        for section in note.get("sections", []):
            if not section.get("ai_content"):
                continue
            try:
                value = read_field(
                    section["ai_content"],
                    section.get("ai_content_encrypted"),
                    codec,
                    section.get("id"),
                )
            except EncryptionError as exc:
                Log.error(
                    f"Section content failed to decrypt ({exc.__class__.__name__}), skipping",
                    record_id=section.get("id"),
                )
                continue
            if value.text.strip():
                body.append(f"### {section['name']}\n{value.text}")
        if body:
            used += len(body)
            parts.append(f"=== Заметка от {created_at} ===\n" + "\n\n".join(body))

    Log.info(f"Combined {used} sections from {len(notes)} notes")
    return "\n\n".join(parts)
