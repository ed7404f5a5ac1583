import asyncio
from datetime import datetime, timezone

from app.database.repositories.generation_repository import GenerationRepository
from app.logging.logger import Log
from app.orchestration.exceptions import SupervisorClosedError
from app.orchestration.models import (
    BatchResult,
    BatchStatus,
    GenerationBatch,
    JobResult,
    JobStatus,
)
from app.orchestration.orchestrator import GenerationOrchestrator


class BatchHandle:
    """Reference to a batch running in the background."""

    def __init__(self, batch_id: str, task: "asyncio.Task[BatchResult]") -> None:
        self.batch_id = batch_id
        self._task = task

    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> BatchResult:
        """Wait for the batch to finish. Never raises for job or store failures."""
        return await asyncio.shield(self._task)


class GenerationSupervisor:
    """Owns background batch tasks: submit, observe, stop.

    A batch task that crashes (for example on a store outage) is logged and
    its batch is marked failed instead of being lost.
    """

    def __init__(
        self, orchestrator: GenerationOrchestrator, repository: GenerationRepository
    ) -> None:
        self._orchestrator = orchestrator
        self._repository = repository
        self._stop_event = asyncio.Event()
        self._tasks: set[asyncio.Task[BatchResult]] = set()
        self._accepting = True

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def submit(self, batch: GenerationBatch) -> BatchHandle:
        """Schedule *batch* on the running loop and return immediately."""
        if not self._accepting:
            raise SupervisorClosedError("Supervisor is shutting down, batch rejected")
        task = asyncio.create_task(self._supervise(batch), name=f"batch-{batch.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return BatchHandle(batch.id, task)

    async def shutdown(self) -> None:
        """Stop dispatching new jobs and wait for every in-flight job to finish."""
        self._accepting = False
        self._stop_event.set()
        if self._tasks:
            Log.info(f"Supervisor shutting down, waiting for {len(self._tasks)} batches")
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _supervise(self, batch: GenerationBatch) -> BatchResult:
        try:
            return await self._orchestrator.run(batch, self._stop_event)
        except Exception as exc:
            Log.error(f"Batch crashed: {exc.__class__.__name__}: {exc}", batch_id=batch.id)
            message = f"batch crashed: {str(exc) or exc.__class__.__name__}"
            await self._fail_unfinished(batch, message)
            batch.status = BatchStatus.FAILED
            if batch.persist_batch_status:
                try:
                    await self._repository.mark_batch_finished(batch.id, BatchStatus.FAILED.value)
                except Exception as store_exc:
                    Log.error(f"Could not persist failed status: {store_exc}", batch_id=batch.id)
            return BatchResult(
                batch_id=batch.id,
                job_results=[JobResult(j.id, j.status, j.error_message) for j in batch.jobs],
                final_status=BatchStatus.FAILED,
            )

    async def _fail_unfinished(self, batch: GenerationBatch, message: str) -> None:
        """Mark every job that never reached a terminal state as failed, best effort."""
        for job in batch.jobs:
            if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                continue
            job.status = JobStatus.FAILED
            job.error_message = message
            job.finished_at = datetime.now(timezone.utc)
            try:
                await self._repository.mark_job_failed(job.id, message)
            except Exception as store_exc:
                Log.error(
                    f"Could not persist failed job: {store_exc}", batch_id=batch.id, job_id=job.id
                )
