import uuid
from typing import Any

import pytest

from app.database.exceptions import RecordNotFoundError
from app.database.postgres_record_store import PostgresRecordStore
from app.database.repositories.generation_repository import GenerationRepository


@pytest.mark.integration
class TestPostgresRecordStore:
    def test_insert_get_update(self, run_with_pool: Any, integration_cleanup: list) -> None:
        store = PostgresRecordStore()

        async def scenario() -> tuple[dict, dict]:
            inserted = await store.insert(
                "clinical_notes",
                {"session_id": "s1", "user_id": "u1", "source_hash": "h", "section_ids": []},
            )
            integration_cleanup.append(("clinical_notes", inserted["id"]))
            await store.update(
                "clinical_notes", inserted["id"], {"generation_status": "running"}
            )
            return inserted, await store.get("clinical_notes", inserted["id"])

        inserted, fetched = run_with_pool(scenario)
        assert isinstance(inserted["id"], str)
        assert fetched["generation_status"] == "running"
        assert fetched["section_ids"] == []
        assert fetched["updated_at"] >= inserted["updated_at"]

    def test_get_missing_raises(self, run_with_pool: Any) -> None:
        store = PostgresRecordStore()

        async def scenario() -> None:
            await store.get("clinical_notes", str(uuid.uuid4()))

        with pytest.raises(RecordNotFoundError):
            run_with_pool(scenario)

    def test_update_missing_raises(self, run_with_pool: Any) -> None:
        store = PostgresRecordStore()

        async def scenario() -> None:
            await store.update("clinical_notes", str(uuid.uuid4()), {"generation_status": "x"})

        with pytest.raises(RecordNotFoundError):
            run_with_pool(scenario)


@pytest.mark.integration
class TestGenerationRepositoryOnPostgres:
    def test_job_lifecycle(self, run_with_pool: Any, integration_cleanup: list) -> None:
        repo = GenerationRepository(PostgresRecordStore())

        async def scenario() -> dict:
            batch_id = await repo.create_batch(session_id="s1", user_id="u1", source_hash="h")
            integration_cleanup.append(("clinical_notes", batch_id))
            first = await repo.create_job(batch_id, name="A", system_prompt="p")
            second = await repo.create_job(batch_id, name="B", system_prompt="p")
            await repo.mark_batch_running(batch_id)
            await repo.store_anonymization_map(first, "map-blob")
            await repo.mark_job_generating(first)
            await repo.mark_job_completed(first, "content-blob")
            await repo.mark_job_failed(second, "timeout")
            await repo.mark_batch_finished(batch_id, "completed")
            return (await repo.batch_status(batch_id)).to_dict()

        summary = run_with_pool(scenario)
        assert summary["status"] == "completed"
        assert [s["status"] for s in summary["sections"]] == ["completed", "failed"]
        assert summary["sections"][0]["generated_at"] is not None
        assert summary["sections"][1]["error_message"] == "timeout"
