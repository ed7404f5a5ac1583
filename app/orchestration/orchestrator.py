"""Concurrency-bounded generation of every section of a batch.

Flow per batch:
1. Anonymize the source text once; store the encrypted map on every job.
2. Dispatch jobs in order, at most ``concurrency`` in flight, and at least
   ``dispatch_delay_seconds`` apart.
3. Per job: generating -> generate (retry policy) -> de-anonymize -> encrypt
   -> completed. Any failure marks only that job failed.
4. Join every job, then persist the batch terminal status: failed only when
   every job failed. Dispatched jobs are joined even when dispatch raises.
   Single-section reruns skip the batch status writes.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime, timezone

from app.anonymization.base import BaseAnonymizer
from app.anonymization.deanonymizer import deanonymize
from app.anonymization.models import AnonymizationMap
from app.database.repositories.generation_repository import GenerationRepository
from app.encryption.base import BaseCodec
from app.generation.client_base import BaseGenerationClient
from app.generation.exceptions import GenerationNetworkError
from app.generation.retry import RetryPolicy
from app.logging.logger import Log
from app.orchestration.models import (
    BatchResult,
    BatchStatus,
    GenerationBatch,
    GenerationJob,
    JobResult,
    JobStatus,
)

STOPPED_BEFORE_DISPATCH = "generation stopped before dispatch"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GenerationOrchestrator:
    def __init__(
        self,
        *,
        anonymizer: BaseAnonymizer,
        client: BaseGenerationClient,
        retry_policy: RetryPolicy,
        codec: BaseCodec,
        repository: GenerationRepository,
        user_prompt_template: str,
        concurrency: int = 3,
        dispatch_delay_seconds: float = 0.2,
        call_timeout_seconds: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._anonymizer = anonymizer
        self._client = client
        self._retry_policy = retry_policy
        self._codec = codec
        self._repository = repository
        self._user_prompt_template = user_prompt_template
        self._concurrency = concurrency
        self._dispatch_delay_seconds = dispatch_delay_seconds
        self._call_timeout_seconds = call_timeout_seconds
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._clock = clock
        self._sleep = sleep

    async def run(
        self, batch: GenerationBatch, stop_event: asyncio.Event | None = None
    ) -> BatchResult:
        """Generate every job of *batch* and return the per-job outcome.

        Job failures are recorded, never raised. Store errors while persisting
        the batch itself propagate to the caller, but only after every
        dispatched job has finished.
        """
        Log.info(f"Starting {len(batch.jobs)} jobs", batch_id=batch.id)
        batch.status = BatchStatus.RUNNING
        if batch.persist_batch_status:
            await self._repository.mark_batch_running(batch.id)

        anonymization = self._anonymizer.anonymize(batch.source_text, batch.identifiers)
        map_ciphertext = self._codec.encrypt(anonymization.mapping.to_json())
        for job in batch.jobs:
            await self._repository.store_anonymization_map(job.id, map_ciphertext)
        user_text = self._user_prompt_template.format(transcript=anonymization.anonymized_text)

        semaphore = asyncio.BoundedSemaphore(self._concurrency)
        tasks: list[asyncio.Task[None]] = []
        last_dispatch: float | None = None
        try:
            for index, job in enumerate(batch.jobs):
                await semaphore.acquire()
                if last_dispatch is not None:
                    remaining = self._dispatch_delay_seconds - (self._clock() - last_dispatch)
                    if remaining > 0:
                        await self._sleep(remaining)
                if stop_event is not None and stop_event.is_set():
                    semaphore.release()
                    await self._fail_undispatched(batch, batch.jobs[index:])
                    break
                last_dispatch = self._clock()
                tasks.append(
                    asyncio.create_task(
                        self._run_job(batch, job, user_text, anonymization.mapping, semaphore)
                    )
                )
        finally:
            # Dispatched jobs always finish before run() returns or raises.
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    Log.error(f"Could not persist job state: {outcome}", batch_id=batch.id)

        job_results = [JobResult(job.id, job.status, job.error_message) for job in batch.jobs]
        if batch.jobs and all(job.status is JobStatus.FAILED for job in batch.jobs):
            final_status = BatchStatus.FAILED
        else:
            final_status = BatchStatus.COMPLETED
        batch.status = final_status
        if batch.persist_batch_status:
            await self._repository.mark_batch_finished(batch.id, final_status.value)

        result = BatchResult(batch_id=batch.id, job_results=job_results, final_status=final_status)
        Log.info(
            f"Batch {final_status.value} "
            f"({len(job_results) - result.failed_count} completed, {result.failed_count} failed)",
            batch_id=batch.id,
        )
        return result

    async def _run_job(
        self,
        batch: GenerationBatch,
        job: GenerationJob,
        user_text: str,
        mapping: AnonymizationMap,
        semaphore: asyncio.BoundedSemaphore,
    ) -> None:
        try:
            job.status = JobStatus.GENERATING
            job.started_at = _now()
            await self._repository.mark_job_generating(job.id)

            policy = self._policy_for(job)
            generated = await policy.execute(
                lambda model_id: self._call(job, user_text, model_id),
                operation=f"Batch {batch.id} job {job.id}",
            )
            ciphertext = self._codec.encrypt(deanonymize(generated, mapping))
            await self._repository.mark_job_completed(job.id, ciphertext)

            job.result_ciphertext = ciphertext
            job.status = JobStatus.COMPLETED
            job.finished_at = _now()
            Log.info(f"Job completed ({len(generated)} chars)", batch_id=batch.id, job_id=job.id)
        except Exception as exc:
            job.status = JobStatus.FAILED
            job.error_message = str(exc) or exc.__class__.__name__
            job.finished_at = _now()
            Log.error(
                f"Job failed: {exc.__class__.__name__}: {exc}", batch_id=batch.id, job_id=job.id
            )
            await self._repository.mark_job_failed(job.id, job.error_message)
        finally:
            semaphore.release()

    async def _call(self, job: GenerationJob, user_text: str, model_id: str) -> str:
        spec = job.spec
        try:
            return await asyncio.wait_for(
                self._client.generate(
                    system_prompt=spec.system_prompt,
                    user_text=user_text,
                    model_id=model_id,
                    temperature=self._temperature if spec.temperature is None else spec.temperature,
                    max_tokens=self._max_tokens if spec.max_tokens is None else spec.max_tokens,
                ),
                timeout=self._call_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationNetworkError(
                f"Generation call timed out after {self._call_timeout_seconds}s"
            ) from exc

    def _policy_for(self, job: GenerationJob) -> RetryPolicy:
        model_id = job.spec.model_id
        if model_id is None:
            return self._retry_policy
        fallbacks = tuple(m for m in self._retry_policy.model_ids if m != model_id)
        return replace(self._retry_policy, model_ids=(model_id, *fallbacks))

    async def _fail_undispatched(self, batch: GenerationBatch, jobs: list[GenerationJob]) -> None:
        Log.warning(f"Stop requested, {len(jobs)} jobs not dispatched", batch_id=batch.id)
        for job in jobs:
            job.status = JobStatus.FAILED
            job.error_message = STOPPED_BEFORE_DISPATCH
            job.finished_at = _now()
            await self._repository.mark_job_failed(job.id, STOPPED_BEFORE_DISPATCH)
