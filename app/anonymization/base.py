from abc import ABC, abstractmethod

from app.anonymization.models import AnonymizationResult, PatientIdentifiers


class BaseAnonymizer(ABC):
    """Contract for all anonymization adapters."""

    @abstractmethod
    def anonymize(
        self,
        text: str,
        identifiers: PatientIdentifiers | None = None,
    ) -> AnonymizationResult:
        """Replace PHI in text with placeholders.

        Args:
            text: Source text (transcripts and/or notes).
            identifiers: Known identifiers of the patient the text belongs to.

        Returns:
            AnonymizationResult with anonymized text and the reversible map.
            Never raises for ordinary input; absent identifiers are skipped.
        """
