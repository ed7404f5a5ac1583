from datetime import datetime, timezone

from app.database.models import NoteStatusRecord, SectionStatusRecord
from app.database.record_store import BaseRecordStore


class GenerationRepository:
    """State transitions for the clinical_notes (batch) and sections (job) entities."""

    NOTES = "clinical_notes"
    SECTIONS = "sections"
    CASE_SUMMARIES = "case_summaries"

    def __init__(self, store: BaseRecordStore) -> None:
        self._store = store

    async def create_batch(self, *, session_id: str, user_id: str, source_hash: str) -> str:
        """Insert a pending clinical note and return its id."""
        record = await self._store.insert(
            self.NOTES,
            {
                "session_id": session_id,
                "user_id": user_id,
                "source_hash": source_hash,
                "generation_status": "pending",
                "section_ids": [],
            },
        )
        return record["id"]

    async def create_job(self, batch_id: str, *, name: str, system_prompt: str) -> str:
        """Insert a pending section and attach it to its note."""
        record = await self._store.insert(
            self.SECTIONS,
            {
                "clinical_note_id": batch_id,
                "name": name,
                "system_prompt": system_prompt,
                "generation_status": "pending",
                "generation_error": None,
                "ai_content": None,
                "ai_content_encrypted": True,
                "ai_generated_at": None,
                "anonymization_map_encrypted": None,
            },
        )
        note = await self._store.get(self.NOTES, batch_id)
        await self._store.update(
            self.NOTES, batch_id, {"section_ids": [*note.get("section_ids", []), record["id"]]}
        )
        return record["id"]

    async def get_job(self, job_id: str) -> dict:
        return await self._store.get(self.SECTIONS, job_id)

    async def store_anonymization_map(self, job_id: str, map_ciphertext: str) -> None:
        await self._store.update(
            self.SECTIONS, job_id, {"anonymization_map_encrypted": map_ciphertext}
        )

    async def mark_batch_running(self, batch_id: str) -> None:
        await self._store.update(self.NOTES, batch_id, {"generation_status": "running"})

    async def mark_batch_finished(self, batch_id: str, status: str) -> None:
        """Persist the terminal batch status (completed or failed)."""
        await self._store.update(self.NOTES, batch_id, {"generation_status": status})

    async def mark_job_pending(self, job_id: str) -> None:
        await self._store.update(
            self.SECTIONS, job_id, {"generation_status": "pending", "generation_error": None}
        )

    async def mark_job_generating(self, job_id: str) -> None:
        await self._store.update(self.SECTIONS, job_id, {"generation_status": "generating"})

    async def mark_job_completed(self, job_id: str, ciphertext: str) -> None:
        await self._store.update(
            self.SECTIONS,
            job_id,
            {
                "generation_status": "completed",
                "generation_error": None,
                "ai_content": ciphertext,
                "ai_content_encrypted": True,
                "ai_generated_at": datetime.now(timezone.utc),
            },
        )

    async def mark_job_failed(self, job_id: str, error: str) -> None:
        await self._store.update(
            self.SECTIONS,
            job_id,
            {"generation_status": "failed", "generation_error": error},
        )

    async def batch_status(self, batch_id: str) -> NoteStatusRecord:
        """Return the note status with per-section status and errors."""
        note = await self._store.get(self.NOTES, batch_id)
        sections = []
        for section_id in note.get("section_ids", []):
            row = await self._store.get(self.SECTIONS, section_id)
            sections.append(
                SectionStatusRecord(
                    id=row["id"],
                    name=row["name"],
                    status=row["generation_status"],
                    error_message=row.get("generation_error"),
                    generated_at=row.get("ai_generated_at"),
                )
            )
        return NoteStatusRecord(id=note["id"], status=note["generation_status"], sections=sections)

    async def refresh_batch_status(self, batch_id: str) -> str:
        """Recompute the note status from its sections after a single-section rerun.

        The note is failed only when every section failed.
        """
        summary = await self.batch_status(batch_id)
        if summary.sections and summary.failed_count == len(summary.sections):
            status = "failed"
        else:
            status = "completed"
        await self.mark_batch_finished(batch_id, status)
        return status

    async def completed_notes(self, session_id: str) -> list[dict]:
        """Return the session's completed notes, oldest first, each with its ``sections``."""
        notes = await self._store.find(
            self.NOTES, {"session_id": session_id, "generation_status": "completed"}
        )
        for note in notes:
            note["sections"] = [
                await self._store.get(self.SECTIONS, section_id)
                for section_id in note.get("section_ids", [])
            ]
        return notes

    async def store_case_summary(
        self,
        *,
        session_id: str,
        user_id: str,
        summary_ciphertext: str,
        based_on_notes_count: int,
    ) -> dict:
        """Insert an encrypted case summary and return the stored record."""
        return await self._store.insert(
            self.CASE_SUMMARIES,
            {
                "session_id": session_id,
                "user_id": user_id,
                "summary_encrypted": summary_ciphertext,
                "based_on_notes_count": based_on_notes_count,
                "generated_at": datetime.now(timezone.utc),
            },
        )
