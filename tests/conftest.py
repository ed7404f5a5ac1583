import asyncio
import base64
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from app.anonymization.anonymizer import Anonymizer
from app.anonymization.models import PatientIdentifiers
from app.database.record_store import InMemoryRecordStore
from app.database.repositories.generation_repository import GenerationRepository
from app.encryption.codec import AesGcmCodec
from app.generation.client_base import BaseGenerationClient
from app.generation.exceptions import GenerationError
from app.generation.retry import RetryPolicy
from app.orchestration.models import GenerationBatch, GenerationJob, JobSpec
from app.orchestration.orchestrator import GenerationOrchestrator

TEST_KEY = base64.b64encode(bytes(range(32))).decode("ascii")


class RecordingClient(BaseGenerationClient):
    """Fake generation client that records calls and tracks overlap."""

    def __init__(
        self,
        response: str = "[PATIENT_NAME] отмечает улучшение.",
        fail_prompts: tuple[str, ...] = (),
        error: Exception | None = None,
        delay: float = 0.0,
        on_call: Callable[[int], None] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.response = response
        self.fail_prompts = fail_prompts
        self.error = error
        self.delay = delay
        self.delays = delays or {}
        self.on_call = on_call
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(
        self,
        *,
        system_prompt: str,
        user_text: str,
        model_id: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_text": user_text,
                "model_id": model_id,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.on_call is not None:
            self.on_call(len(self.calls))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(system_prompt, self.delay))
            if self.error is not None:
                raise self.error
            if system_prompt in self.fail_prompts:
                raise GenerationError(f"rejected prompt {system_prompt}")
            return self.response
        finally:
            self.in_flight -= 1


class Harness:
    """Orchestrator wired to in-memory collaborators."""

    def __init__(self, client: BaseGenerationClient, **overrides: Any) -> None:
        self.client = client
        self.store = InMemoryRecordStore()
        self.repository = GenerationRepository(self.store)
        self.codec = AesGcmCodec(TEST_KEY)
        self.retry_sleep = AsyncMock()
        self.dispatch_sleep = AsyncMock()
        options: dict[str, Any] = {
            "anonymizer": Anonymizer(),
            "client": client,
            "retry_policy": RetryPolicy(
                model_ids=("primary-model", "fallback-model"),
                max_retries=overrides.pop("max_retries", 4),
                sleep=self.retry_sleep,
            ),
            "codec": self.codec,
            "repository": self.repository,
            "user_prompt_template": "Транскрипт:\n\n{transcript}",
            "concurrency": 3,
            "dispatch_delay_seconds": 0.0,
            "sleep": self.dispatch_sleep,
        }
        options.update(overrides)
        self.orchestrator = GenerationOrchestrator(**options)

    async def create_batch(
        self,
        prompts: list[str],
        source_text: str = "Иванов Петр, 45 лет, жалуется на бессонницу.",
        identifiers: PatientIdentifiers | None = None,
    ) -> GenerationBatch:
        batch_id = await self.repository.create_batch(
            session_id="session-1", user_id="user-1", source_hash="hash"
        )
        jobs = []
        for index, prompt in enumerate(prompts):
            spec = JobSpec(name=f"section-{index}", system_prompt=prompt)
            job_id = await self.repository.create_job(
                batch_id, name=spec.name, system_prompt=prompt
            )
            jobs.append(GenerationJob(id=job_id, spec=spec))
        return GenerationBatch(
            id=batch_id,
            source_text=source_text,
            identifiers=identifiers or PatientIdentifiers(name="Иванов Петр"),
            jobs=jobs,
        )


@pytest.fixture
def encryption_key() -> str:
    return TEST_KEY


@pytest.fixture
def make_client() -> Callable[..., RecordingClient]:
    return RecordingClient


@pytest.fixture
def make_harness() -> Callable[..., Harness]:
    return Harness
