from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class SectionStatusRecord:
    """Polled view of a row from the sections table. Never carries content."""

    id: str
    name: str
    status: str
    error_message: str | None = None
    generated_at: datetime | None = None


@dataclass
class NoteStatusRecord:
    """Polled view of a row from the clinical_notes table and its sections."""

    id: str
    status: str
    sections: list[SectionStatusRecord] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for section in self.sections if section.status == "completed")

    @property
    def failed_count(self) -> int:
        return sum(1 for section in self.sections if section.status == "failed")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total"] = len(self.sections)
        data["completed"] = self.completed_count
        data["failed"] = self.failed_count
        for section in data["sections"]:
            if section["generated_at"] is not None:
                section["generated_at"] = section["generated_at"].isoformat()
        return data
