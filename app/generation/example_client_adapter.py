"""Example generation client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseGenerationClient and register the provider in GenerationClientFactory.
"""

from typing import ClassVar

from app.generation.client_base import BaseGenerationClient


class ExampleClientAdapter(BaseGenerationClient):
    """Example adapter that echoes a fixed section mentioning the patient placeholder.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[str] = (
        "[PATIENT_NAME] обратился(ась) с жалобами, описанными в транскрипте."
    )

    async def generate(
        self,
        *,
        system_prompt: str,
        user_text: str,
        model_id: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        _ = system_prompt, user_text, model_id, temperature, max_tokens
        return self.DEFAULT_RESPONSE
