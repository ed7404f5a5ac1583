"""One-shot case summary over already generated note content.

Same privacy path as section generation: anonymize -> generate (retry
policy) -> de-anonymize -> encrypt. Nothing is persisted here.
"""

import asyncio
from dataclasses import dataclass, field

from app.anonymization.base import BaseAnonymizer
from app.anonymization.deanonymizer import deanonymize
from app.anonymization.models import PatientIdentifiers
from app.encryption.base import BaseCodec
from app.generation.client_base import BaseGenerationClient
from app.generation.exceptions import GenerationNetworkError
from app.generation.retry import RetryPolicy
from app.logging.logger import Log


@dataclass(frozen=True)
class GeneratedSummary:
    text: str = field(repr=False)
    ciphertext: str = field(repr=False)


class CaseSummarizer:
    def __init__(
        self,
        *,
        anonymizer: BaseAnonymizer,
        client: BaseGenerationClient,
        retry_policy: RetryPolicy,
        codec: BaseCodec,
        system_prompt: str,
        user_prompt_template: str,
        call_timeout_seconds: float = 60.0,
        temperature: float = 0.3,
        max_tokens: int = 1500,
    ) -> None:
        self._anonymizer = anonymizer
        self._client = client
        self._retry_policy = retry_policy
        self._codec = codec
        self._system_prompt = system_prompt
        self._user_prompt_template = user_prompt_template
        self._call_timeout_seconds = call_timeout_seconds
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def summarize(
        self, notes_text: str, identifiers: PatientIdentifiers
    ) -> GeneratedSummary:
        """Generate a summary of *notes_text*.

        Raises:
            GenerationError: if generation fails after the retry policy gives up.
            EncryptionError: if the codec cannot encrypt the result.
        """
        anonymization = self._anonymizer.anonymize(notes_text, identifiers)
        user_text = self._user_prompt_template.format(notes=anonymization.anonymized_text)
        generated = await self._retry_policy.execute(
            lambda model_id: self._call(user_text, model_id), operation="Case summary"
        )
        summary = deanonymize(generated, anonymization.mapping)
        Log.info(
            f"Case summary generated ({len(summary)} chars, "
            f"{len(anonymization.mapping)} placeholders)"
        )
        return GeneratedSummary(text=summary, ciphertext=self._codec.encrypt(summary))

    async def _call(self, user_text: str, model_id: str) -> str:
        try:
            return await asyncio.wait_for(
                self._client.generate(
                    system_prompt=self._system_prompt,
                    user_text=user_text,
                    model_id=model_id,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                ),
                timeout=self._call_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationNetworkError(
                f"Case summary call timed out after {self._call_timeout_seconds}s"
            ) from exc
