import json
from dataclasses import dataclass, field
from typing import Any

from app.anonymization.exceptions import AnonymizationMapError


@dataclass(frozen=True)
class PatientIdentifiers:
    """Known identifiers of the patient a text belongs to.

    Ephemeral input: values are never logged (excluded from repr).
    """

    name: str | None = field(default=None, repr=False)
    email: str | None = field(default=None, repr=False)
    phone: str | None = field(default=None, repr=False)
    address: str | None = field(default=None, repr=False)
    date_of_birth: str | None = field(default=None, repr=False)

    @classmethod
    def from_record(cls, record: dict[str, Any] | None) -> "PatientIdentifiers":
        """Build identifiers from a patient record, ignoring unrelated columns."""
        if not record:
            return cls()

        def _value(key: str) -> str | None:
            raw = record.get(key)
            return str(raw) if raw else None

        return cls(
            name=_value("name"),
            email=_value("email"),
            phone=_value("phone"),
            address=_value("address"),
            date_of_birth=_value("date_of_birth"),
        )


class AnonymizationMap(dict[str, str]):
    """Placeholder -> original substring, built fresh for every anonymized text."""

    def record(self, placeholder: str, original: str, *, keep_first: bool = True) -> None:
        """Store *original* under *placeholder*.

        Single-slot placeholders keep the first value seen (``keep_first``);
        indexed placeholders are unique per occurrence and always written.
        """
        if keep_first and placeholder in self:
            return
        self[placeholder] = original

    def to_json(self) -> str:
        return json.dumps(dict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "AnonymizationMap":
        """Restore a persisted map.

        Raises:
            AnonymizationMapError: if *raw* is not a JSON object of strings.
        """
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise AnonymizationMapError(f"Invalid anonymization map: {exc}") from exc
        if not isinstance(data, dict):
            raise AnonymizationMapError("Anonymization map must be a JSON object")
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in data.items()):
            raise AnonymizationMapError("Anonymization map must map strings to strings")
        return cls(data)

    def __repr__(self) -> str:
        return f"AnonymizationMap(placeholders={sorted(self)})"


@dataclass
class AnonymizationResult:
    """Output of the anonymizer step."""

    anonymized_text: str
    mapping: AnonymizationMap = field(default_factory=AnonymizationMap)
