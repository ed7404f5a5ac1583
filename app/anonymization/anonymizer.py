"""Deterministic PHI anonymizer for Russian-language session text.

Processing flow:
1. Normalize Unicode (NFC) so identifiers and text compare codepoint by codepoint.
2. Replace every known patient identifier (full name, name tokens, phone,
   e-mail, address, date of birth) using letter-boundary matching.
3. Replace pattern-detected PHI: phones, e-mails, dates, ages, relatives,
   employers, titled doctors and qualified city mentions.
4. Return anonymized text + the placeholder map needed to reverse step 2.

Pass order matters: placeholders are bracketed Latin upper-case tokens, so no
later (Cyrillic or digit based) pattern can match a placeholder inserted earlier.
There is no NER: PHI that is neither known nor pattern-shaped stays in the text.
"""

from __future__ import annotations

import re
import unicodedata
from typing import ClassVar

from app.anonymization.base import BaseAnonymizer
from app.anonymization.boundary import replace_whole
from app.anonymization.models import AnonymizationMap, AnonymizationResult, PatientIdentifiers
from app.logging.logger import Log

_LETTER = r"[^\W\d_]"
_CAPITALIZED = r"[А-ЯЁ][а-яё]+"


class Anonymizer(BaseAnonymizer):
    """Deterministic anonymizer: known identifiers plus fixed patterns, no model."""

    _MIN_NAME_PART_LENGTH: ClassVar[int] = 3

    _PHONE_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<!\d)(?:\+7|8)[\s\-]?\(?\d{3}\)?[\s\-]?\d{3}[\s\-]?\d{2}[\s\-]?\d{2}(?!\d)",
    )
    _EMAIL_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}",
    )
    _DATE_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<!\d)\d{1,2}[./\-]\d{1,2}[./\-]\d{2,4}(?!\d)",
    )
    _AGE_RE: ClassVar[re.Pattern[str]] = re.compile(
        rf"(?<!\d)(\d{{1,3}})\s*(?:лет|года|год)(?!{_LETTER})",
        re.IGNORECASE,
    )
    _RELATIVE_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![^\W\d_])"
        r"((?i:сестра|брат|мать|отец|мама|папа|бабушка|дедушка|дочь|сын))"
        rf"\s+({_CAPITALIZED})(?!{_LETTER})",
    )
    _EMPLOYER_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![^\W\d_])"
        r"((?i:работает\s+в\s+компании|работает\s+в|работает\s+на))"
        r"\s+(«?[А-ЯЁA-Z][\w\-]*(?:\s+[А-ЯЁA-Z][\w\-]*)*»?)",
    )
    _DOCTOR_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![^\W\d_])"
        r"((?i:д-р|доктор|врач))"
        rf"\s+({_CAPITALIZED})(?!{_LETTER})",
    )
    # A bare "в X" is deliberately not matched: "в Понедельник", "в России"...
    _CITY_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"(?<![^\W\d_])"
        r"((?i:в\s+городе|из\s+города|город))"
        rf"\s+([А-ЯЁ][а-яё\-]+)(?!{_LETTER})",
    )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def anonymize(
        self,
        text: str,
        identifiers: PatientIdentifiers | None = None,
    ) -> AnonymizationResult:
        """Replace PHI in *text* with placeholders.

        Args:
            text: Session transcript and/or notes.
            identifiers: Known identifiers of the patient; absent fields are skipped.

        Returns:
            AnonymizationResult with anonymized text and a fresh placeholder map.
        """
        if not text:
            return AnonymizationResult(anonymized_text="")

        mapping = AnonymizationMap()
        normalized = unicodedata.normalize("NFC", text)

        anonymized = self._replace_known(normalized, identifiers or PatientIdentifiers(), mapping)
        anonymized = self._replace_patterns(anonymized, mapping)

        Log.info(
            f"Anonymized {len(normalized)} chars: {len(mapping)} placeholders recorded"
        )
        return AnonymizationResult(anonymized_text=anonymized, mapping=mapping)

    # ------------------------------------------------------------------
    # Pass 1: known identifiers
    # ------------------------------------------------------------------

    def _replace_known(
        self,
        text: str,
        identifiers: PatientIdentifiers,
        mapping: AnonymizationMap,
    ) -> str:
        name = self._clean(identifiers.name)
        if name:
            text = self._replace_exact(text, name, "[PATIENT_NAME]", mapping)
            parts = [
                part for part in name.split() if len(part) >= self._MIN_NAME_PART_LENGTH
            ]
            for index, part in enumerate(parts):
                text = self._replace_exact(
                    text, part, f"[PATIENT_NAME_PART_{index}]", mapping
                )

        for value, placeholder in (
            (identifiers.phone, "[PHONE]"),
            (identifiers.email, "[EMAIL]"),
            (identifiers.address, "[ADDRESS]"),
            (identifiers.date_of_birth, "[DOB]"),
        ):
            cleaned = self._clean(value)
            if cleaned:
                text = self._replace_exact(text, cleaned, placeholder, mapping)
        return text

    @staticmethod
    def _replace_exact(
        text: str,
        value: str,
        placeholder: str,
        mapping: AnonymizationMap,
    ) -> str:
        replaced, count = replace_whole(text, value, placeholder)
        if count:
            mapping.record(placeholder, value)
        return replaced

    @staticmethod
    def _clean(value: str | None) -> str:
        if not value:
            return ""
        return unicodedata.normalize("NFC", value).strip()

    # ------------------------------------------------------------------
    # Pass 2: pattern-detected PHI
    # ------------------------------------------------------------------

    def _replace_patterns(self, text: str, mapping: AnonymizationMap) -> str:
        text = self._replace_single_slot(text, self._PHONE_RE, "[PHONE]", mapping)
        text = self._replace_single_slot(text, self._EMAIL_RE, "[EMAIL]", mapping)
        text = self._replace_dates(text, mapping)
        text = self._replace_ages(text, mapping)
        text = self._replace_relatives(text, mapping)
        text = self._replace_prefixed(text, self._EMPLOYER_RE, "[EMPLOYER]", mapping)
        text = self._replace_prefixed(text, self._DOCTOR_RE, "[DOCTOR_1]", mapping)
        text = self._replace_prefixed(text, self._CITY_RE, "[CITY]", mapping)
        return text

    @staticmethod
    def _replace_single_slot(
        text: str,
        pattern: re.Pattern[str],
        placeholder: str,
        mapping: AnonymizationMap,
    ) -> str:
        def _sub(match: re.Match[str]) -> str:
            mapping.record(placeholder, match.group(0))
            return placeholder

        return pattern.sub(_sub, text)

    def _replace_dates(self, text: str, mapping: AnonymizationMap) -> str:
        counter = 0

        def _sub(match: re.Match[str]) -> str:
            nonlocal counter
            counter += 1
            placeholder = f"[DATE_{counter}]"
            mapping.record(placeholder, match.group(0))
            return placeholder

        return self._DATE_RE.sub(_sub, text)

    def _replace_ages(self, text: str, mapping: AnonymizationMap) -> str:
        # The unit word is normalized to "лет" so the sentence stays grammatical.
        def _sub(match: re.Match[str]) -> str:
            mapping.record("[AGE]", match.group(1))
            return "[AGE] лет"

        return self._AGE_RE.sub(_sub, text)

    def _replace_relatives(self, text: str, mapping: AnonymizationMap) -> str:
        counter = 0

        def _sub(match: re.Match[str]) -> str:
            nonlocal counter
            counter += 1
            placeholder = f"[RELATIVE_{counter}]"
            mapping.record(placeholder, match.group(2), keep_first=False)
            return f"{match.group(1)} {placeholder}"

        return self._RELATIVE_RE.sub(_sub, text)

    @staticmethod
    def _replace_prefixed(
        text: str,
        pattern: re.Pattern[str],
        placeholder: str,
        mapping: AnonymizationMap,
    ) -> str:
        def _sub(match: re.Match[str]) -> str:
            mapping.record(placeholder, match.group(2).strip())
            return f"{match.group(1)} {placeholder}"

        return pattern.sub(_sub, text)
