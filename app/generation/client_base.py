from abc import ABC, abstractmethod


class BaseGenerationClient(ABC):
    """Contract for provider-specific text generation clients."""

    @abstractmethod
    async def generate(
        self,
        *,
        system_prompt: str,
        user_text: str,
        model_id: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Return generated text.

        Raises:
            GenerationRateLimitError, GenerationServerError, GenerationNetworkError,
            ModelUnavailableError, GenerationConfigurationError, GenerationError.
        """
