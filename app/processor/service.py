import hashlib
from datetime import datetime, timezone

from app.anonymization.anonymizer import Anonymizer
from app.anonymization.models import PatientIdentifiers
from app.config.settings import Settings
from app.database.factory import RecordStoreFactory
from app.database.models import NoteStatusRecord
from app.database.repositories.generation_repository import GenerationRepository
from app.encryption.base import BaseCodec
from app.encryption.factory import CodecFactory
from app.generation.factory import GenerationClientFactory
from app.generation.prompt_loader import load_case_summary_prompts, load_user_prompt_template
from app.generation.retry import RetryPolicy
from app.logging.logger import Log
from app.orchestration.models import BatchResult, GenerationBatch, GenerationJob, JobSpec
from app.orchestration.orchestrator import GenerationOrchestrator
from app.orchestration.summarizer import CaseSummarizer
from app.orchestration.supervisor import BatchHandle, GenerationSupervisor
from app.processor.exceptions import (
    EmptySourceError,
    NoCompletedNotesError,
    NoSectionsError,
    RateLimitExceededError,
)
from app.processor.models import CaseSummaryResult, GenerationRequest
from app.processor.sources import combine_note_sections, combine_sources
from app.ratelimit.base import BaseRateLimiter
from app.ratelimit.factory import RateLimiterFactory


class NoteGenerationService:
    """Accepts clinical note generation requests and tracks their progress.

    Flow: rate limit -> combine sources -> persist note and pending sections
    -> hand the batch to the supervisor -> return without waiting.
    """

    def __init__(
        self,
        repository: GenerationRepository,
        supervisor: GenerationSupervisor,
        codec: BaseCodec,
        rate_limiter: BaseRateLimiter,
        summarizer: CaseSummarizer,
    ) -> None:
        self._repository = repository
        self._supervisor = supervisor
        self._codec = codec
        self._rate_limiter = rate_limiter
        self._summarizer = summarizer

    @property
    def supervisor(self) -> GenerationSupervisor:
        return self._supervisor

    async def start_generation(self, request: GenerationRequest) -> BatchHandle:
        """Persist a new note with one pending section per requested section and start it.

        Raises:
            RateLimitExceededError: if the user is over the request rate.
            EmptySourceError: if no source fragment yields text.
            NoSectionsError: if the request names no sections.
        """
        await self._check_rate_limit(request.user_id)
        source_text = self._source_text(request)
        if not request.sections:
            raise NoSectionsError("At least one section is required")

        source_hash = hashlib.sha256(source_text.encode("utf-8")).hexdigest()
        batch_id = await self._repository.create_batch(
            session_id=request.session_id, user_id=request.user_id, source_hash=source_hash
        )
        jobs = []
        for spec in request.sections:
            job_id = await self._repository.create_job(
                batch_id, name=spec.name, system_prompt=spec.system_prompt
            )
            jobs.append(GenerationJob(id=job_id, spec=spec, created_at=datetime.now(timezone.utc)))

        Log.info(
            f"Session {request.session_id}: note {batch_id} created with {len(jobs)} sections"
        )
        batch = GenerationBatch(
            id=batch_id, source_text=source_text, identifiers=request.identifiers, jobs=jobs
        )
        return self._supervisor.submit(batch)

    async def regenerate_section(
        self,
        section_id: str,
        request: GenerationRequest,
        custom_prompt: str | None = None,
    ) -> BatchResult:
        """Re-run one section from the current sources and wait for it.

        The note status is left alone while the section runs and is recomputed
        from all of its sections afterwards.

        Raises:
            RateLimitExceededError, EmptySourceError, RecordNotFoundError.
        """
        await self._check_rate_limit(request.user_id)
        section = await self._repository.get_job(section_id)
        source_text = self._source_text(request)

        spec = JobSpec(
            name=section["name"],
            system_prompt=custom_prompt or section["system_prompt"],
        )
        await self._repository.mark_job_pending(section_id)
        batch = GenerationBatch(
            id=str(section["clinical_note_id"]),
            source_text=source_text,
            identifiers=request.identifiers,
            jobs=[GenerationJob(id=section_id, spec=spec, created_at=datetime.now(timezone.utc))],
            persist_batch_status=False,
        )
        Log.info(
            f"Note {batch.id}: regenerating section {section_id} "
            f"(custom prompt: {custom_prompt is not None})"
        )
        result = await self._supervisor.submit(batch).result()
        await self._repository.refresh_batch_status(batch.id)
        return result

    async def generate_case_summary(
        self,
        session_id: str,
        user_id: str,
        identifiers: PatientIdentifiers,
    ) -> CaseSummaryResult:
        """Summarize every completed note of a session and store the summary encrypted.

        Raises:
            RateLimitExceededError: if the user is over the request rate.
            NoCompletedNotesError: if the session has no completed note.
            EmptySourceError: if no completed section has readable content.
            GenerationError: if the summary cannot be generated.
        """
        await self._check_rate_limit(user_id)
        notes = await self._repository.completed_notes(session_id)
        if not notes:
            raise NoCompletedNotesError(f"Session {session_id} has no completed notes")
        notes_text = combine_note_sections(notes, self._codec)
        if not notes_text.strip():
            raise EmptySourceError("No generated section content to summarize")

        summary = await self._summarizer.summarize(notes_text, identifiers)
        record = await self._repository.store_case_summary(
            session_id=session_id,
            user_id=user_id,
            summary_ciphertext=summary.ciphertext,
            based_on_notes_count=len(notes),
        )
        Log.info(f"Session {session_id}: case summary stored from {len(notes)} notes")
        return CaseSummaryResult(
            id=record["id"],
            session_id=session_id,
            summary=summary.text,
            based_on_notes_count=len(notes),
            generated_at=record["generated_at"],
        )

    async def generation_status(self, batch_id: str) -> NoteStatusRecord:
        return await self._repository.batch_status(batch_id)

    async def _check_rate_limit(self, user_id: str) -> None:
        decision = await self._rate_limiter.check(f"generation:{user_id}")
        if not decision.allowed:
            Log.warning(f"User {user_id}: generation rate limit exceeded")
            raise RateLimitExceededError(
                "Too many generation requests, try again later",
                retry_after_seconds=decision.retry_after_seconds,
            )

    def _source_text(self, request: GenerationRequest) -> str:
        source_text = combine_sources(request.sources, self._codec)
        if not source_text.strip():
            raise EmptySourceError("No transcript or notes text to generate from")
        return source_text


def build_service(settings: Settings) -> NoteGenerationService:
    """Build a NoteGenerationService with all required adapters.

    Raises:
        EncryptionConfigurationError: if the encryption key is unusable.
        GenerationConfigurationError: if the generation provider is unusable.
    """
    codec = CodecFactory.create(settings)
    client = GenerationClientFactory.create(settings)
    retry_policy = RetryPolicy(
        model_ids=GenerationClientFactory.model_ids(settings),
        max_retries=settings.generation_max_retries,
        base_delay=settings.generation_retry_base_delay_seconds,
        max_delay=settings.generation_retry_max_delay_seconds,
    )
    repository = GenerationRepository(RecordStoreFactory.create(settings))
    anonymizer = Anonymizer()
    orchestrator = GenerationOrchestrator(
        anonymizer=anonymizer,
        client=client,
        retry_policy=retry_policy,
        codec=codec,
        repository=repository,
        user_prompt_template=load_user_prompt_template(),
        concurrency=settings.generation_concurrency,
        dispatch_delay_seconds=settings.generation_dispatch_delay_ms / 1000,
        call_timeout_seconds=settings.generation_call_timeout_seconds,
        temperature=settings.generation_temperature,
        max_tokens=settings.generation_max_tokens,
    )
    summary_system_prompt, summary_user_template = load_case_summary_prompts()
    summarizer = CaseSummarizer(
        anonymizer=anonymizer,
        client=client,
        retry_policy=retry_policy,
        codec=codec,
        system_prompt=summary_system_prompt,
        user_prompt_template=summary_user_template,
        call_timeout_seconds=settings.generation_call_timeout_seconds,
        temperature=settings.generation_temperature,
        max_tokens=settings.generation_case_summary_max_tokens,
    )
    return NoteGenerationService(
        repository=repository,
        supervisor=GenerationSupervisor(orchestrator, repository),
        codec=codec,
        rate_limiter=RateLimiterFactory.create(settings),
        summarizer=summarizer,
    )
