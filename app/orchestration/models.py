from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.anonymization.models import PatientIdentifiers


class JobStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JobSpec:
    """What to generate for one section. Unset parameters fall back to settings."""

    name: str
    system_prompt: str = field(repr=False)
    model_id: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass
class GenerationJob:
    """One section of a batch, owned by the orchestrator while the batch runs."""

    id: str
    spec: JobSpec
    status: JobStatus = JobStatus.PENDING
    error_message: str | None = None
    result_ciphertext: str | None = field(default=None, repr=False)
    created_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


@dataclass
class GenerationBatch:
    """Every section generated from the same source text."""

    id: str
    source_text: str = field(repr=False)
    identifiers: PatientIdentifiers = field(default_factory=PatientIdentifiers)
    jobs: list[GenerationJob] = field(default_factory=list)
    status: BatchStatus = BatchStatus.PENDING
    # False for a single-section rerun: the note status is recomputed by the caller.
    persist_batch_status: bool = True


@dataclass(frozen=True)
class JobResult:
    job_id: str
    status: JobStatus
    error_message: str | None = None


@dataclass(frozen=True)
class BatchResult:
    batch_id: str
    job_results: list[JobResult]
    final_status: BatchStatus

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.job_results if result.status is JobStatus.FAILED)
