"""Builds a GenerationRequest from a decoded JSON payload."""

from typing import Any

from app.anonymization.models import PatientIdentifiers
from app.orchestration.models import JobSpec
from app.processor.exceptions import InvalidRequestError
from app.processor.models import GenerationRequest, SourceFragment

_VALID_KINDS = frozenset({"transcript", "notes"})


def build_request(data: Any) -> GenerationRequest:
    """Validate a request payload and build a GenerationRequest.

    Raises:
        InvalidRequestError: on any validation failure.
    """
    if not isinstance(data, dict):
        raise InvalidRequestError("Request must be an object")
    for key in ("session_id", "user_id"):
        if not data.get(key) or not isinstance(data[key], str):
            raise InvalidRequestError(f"'{key}' must be a non-empty string")
    patient = data.get("patient")
    if patient is not None and not isinstance(patient, dict):
        raise InvalidRequestError("'patient' must be an object or null")
    return GenerationRequest(
        session_id=data["session_id"],
        user_id=data["user_id"],
        identifiers=PatientIdentifiers.from_record(patient),
        sources=_build_sources(data.get("sources", [])),
        sections=_build_sections(data.get("sections", [])),
    )


def _build_sources(raw: Any) -> list[SourceFragment]:
    if not isinstance(raw, list):
        raise InvalidRequestError("'sources' must be a list")
    sources = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InvalidRequestError(f"sources[{i}] must be an object")
        text = item.get("text")
        if text is not None and not isinstance(text, str):
            raise InvalidRequestError(f"sources[{i}].text must be a string or null")
        kind = item.get("kind", "transcript")
        if kind not in _VALID_KINDS:
            raise InvalidRequestError(f"sources[{i}].kind must be one of {sorted(_VALID_KINDS)}")
        encrypted = item.get("encrypted")
        if encrypted is not None and not isinstance(encrypted, bool):
            raise InvalidRequestError(f"sources[{i}].encrypted must be a boolean or null")
        record_id = item.get("record_id")
        sources.append(
            SourceFragment(
                text=text,
                kind=kind,
                encrypted=encrypted,
                record_id=None if record_id is None else str(record_id),
            )
        )
    return sources


def _build_sections(raw: Any) -> list[JobSpec]:
    if not isinstance(raw, list):
        raise InvalidRequestError("'sections' must be a list")
    sections = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InvalidRequestError(f"sections[{i}] must be an object")
        name = item.get("name")
        system_prompt = item.get("system_prompt")
        if not name or not isinstance(name, str):
            raise InvalidRequestError(f"sections[{i}].name must be a non-empty string")
        if not system_prompt or not isinstance(system_prompt, str):
            raise InvalidRequestError(f"sections[{i}].system_prompt must be a non-empty string")
        temperature = item.get("temperature")
        if temperature is not None and (
            isinstance(temperature, bool) or not isinstance(temperature, (int, float))
        ):
            raise InvalidRequestError(f"sections[{i}].temperature must be a number or null")
        max_tokens = item.get("max_tokens")
        if max_tokens is not None and (
            isinstance(max_tokens, bool) or not isinstance(max_tokens, int) or max_tokens < 1
        ):
            raise InvalidRequestError(f"sections[{i}].max_tokens must be a positive integer")
        model_id = item.get("model_id")
        if model_id is not None and not isinstance(model_id, str):
            raise InvalidRequestError(f"sections[{i}].model_id must be a string or null")
        sections.append(
            JobSpec(
                name=name,
                system_prompt=system_prompt,
                model_id=model_id,
                temperature=None if temperature is None else float(temperature),
                max_tokens=max_tokens,
            )
        )
    return sections
