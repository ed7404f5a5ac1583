import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from app.database.exceptions import RecordStoreError
from app.encryption.codec import AesGcmCodec
from app.orchestration.exceptions import SupervisorClosedError
from app.orchestration.models import BatchStatus, JobStatus
from app.orchestration.supervisor import GenerationSupervisor


class TestGenerationSupervisor:
    def test_submit_returns_before_batch_finishes(
        self, make_client: Any, make_harness: Any
    ) -> None:
        harness = make_harness(make_client(delay=0.01))

        async def scenario() -> tuple[bool, Any, bool]:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            batch = await harness.create_batch(["p0", "p1"])
            handle = supervisor.submit(batch)
            done_at_submit = handle.done()
            result = await handle.result()
            return done_at_submit, result, handle.done()

        done_at_submit, result, done_after = asyncio.run(scenario())
        assert done_at_submit is False
        assert done_after is True
        assert result.final_status is BatchStatus.COMPLETED

    def test_active_count(self, make_client: Any, make_harness: Any) -> None:
        harness = make_harness(make_client(delay=0.01))

        async def scenario() -> tuple[int, int]:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            handle = supervisor.submit(await harness.create_batch(["p0"]))
            running = supervisor.active_count
            await handle.result()
            await asyncio.sleep(0)
            return running, supervisor.active_count

        assert asyncio.run(scenario()) == (1, 0)

    def test_shutdown_stops_dispatch_and_waits(
        self, make_client: Any, make_harness: Any
    ) -> None:
        client = make_client(delay=0.01)
        harness = make_harness(client, concurrency=1)

        async def scenario() -> Any:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            handle = supervisor.submit(await harness.create_batch(["p0", "p1", "p2"]))
            await asyncio.sleep(0.005)
            await supervisor.shutdown()
            assert handle.done()
            return await handle.result()

        result = asyncio.run(scenario())
        assert len(client.calls) == 1
        assert result.job_results[0].status is JobStatus.COMPLETED
        assert all(r.status is JobStatus.FAILED for r in result.job_results[1:])

    def test_submit_after_shutdown_is_rejected(
        self, make_client: Any, make_harness: Any
    ) -> None:
        harness = make_harness(make_client())

        async def scenario() -> None:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            await supervisor.shutdown()
            supervisor.submit(await harness.create_batch(["p0"]))

        with pytest.raises(SupervisorClosedError):
            asyncio.run(scenario())

    def test_crashed_batch_is_marked_failed(self, make_client: Any, make_harness: Any) -> None:
        harness = make_harness(make_client())
        harness.repository.mark_batch_running = AsyncMock(side_effect=RecordStoreError("db down"))

        async def scenario() -> tuple[Any, dict]:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            batch = await harness.create_batch(["p0", "p1"])
            result = await supervisor.submit(batch).result()
            return result, (await harness.repository.batch_status(batch.id)).to_dict()

        result, summary = asyncio.run(scenario())
        assert result.final_status is BatchStatus.FAILED
        assert [r.status for r in result.job_results] == [JobStatus.FAILED, JobStatus.FAILED]
        assert all(r.error_message == "batch crashed: db down" for r in result.job_results)
        assert summary["status"] == "failed"
        assert [s["status"] for s in summary["sections"]] == ["failed", "failed"]
        assert summary["sections"][0]["error_message"] == "batch crashed: db down"

    def test_unusable_codec_fails_every_job(self, make_client: Any, make_harness: Any) -> None:
        client = make_client()
        harness = make_harness(client, codec=AesGcmCodec(""))

        async def scenario() -> tuple[Any, dict]:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            batch = await harness.create_batch(["p0", "p1"])
            result = await supervisor.submit(batch).result()
            return result, (await harness.repository.batch_status(batch.id)).to_dict()

        result, summary = asyncio.run(scenario())
        assert client.calls == []
        assert result.final_status is BatchStatus.FAILED
        assert all(r.status is JobStatus.FAILED for r in result.job_results)
        assert summary["status"] == "failed"
        assert [s["status"] for s in summary["sections"]] == ["failed", "failed"]

    def test_crash_with_store_down_still_returns_failed_jobs(
        self, make_client: Any, make_harness: Any
    ) -> None:
        harness = make_harness(make_client())
        harness.repository.mark_batch_running = AsyncMock(side_effect=RecordStoreError("db down"))
        harness.repository.mark_job_failed = AsyncMock(side_effect=RecordStoreError("db down"))
        harness.repository.mark_batch_finished = AsyncMock(side_effect=RecordStoreError("db down"))

        async def scenario() -> Any:
            supervisor = GenerationSupervisor(harness.orchestrator, harness.repository)
            return await supervisor.submit(await harness.create_batch(["p0"])).result()

        result = asyncio.run(scenario())
        assert result.final_status is BatchStatus.FAILED
        assert result.job_results[0].status is JobStatus.FAILED
