from dataclasses import dataclass, field
from datetime import datetime

from app.anonymization.models import PatientIdentifiers
from app.orchestration.models import JobSpec


@dataclass(frozen=True)
class SourceFragment:
    """One stored piece of session text: a recording transcript or a session note.

    ``encrypted`` is the explicit storage flag; ``None`` marks a legacy row.
    """

    text: str | None = field(repr=False)
    kind: str = "transcript"
    encrypted: bool | None = None
    record_id: str | None = None


@dataclass
class GenerationRequest:
    """Everything needed to generate the sections of one clinical note."""

    session_id: str
    user_id: str
    identifiers: PatientIdentifiers = field(default_factory=PatientIdentifiers)
    sources: list[SourceFragment] = field(default_factory=list)
    sections: list[JobSpec] = field(default_factory=list)


@dataclass(frozen=True)
class CaseSummaryResult:
    """A stored case summary; ``summary`` is the de-anonymized plaintext."""

    id: str
    session_id: str
    summary: str = field(repr=False)
    based_on_notes_count: int = 0
    generated_at: datetime | None = None
