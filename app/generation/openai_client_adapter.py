import httpx
import openai

from app.generation.client_base import BaseGenerationClient
from app.generation.exceptions import (
    GenerationConfigurationError,
    GenerationError,
    GenerationNetworkError,
    GenerationRateLimitError,
    GenerationServerError,
    ModelUnavailableError,
)


class OpenAIClientAdapter(BaseGenerationClient):
    """Generation client adapter built on the OpenAI-compatible chat API.

    SDK-level retries are disabled: the orchestrator's retry policy owns them.
    """

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: float,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            max_retries=0,
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
        try:
            response = await self._client.chat.completions.create(
                model=model_id,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_text},
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise GenerationNetworkError(f"AI provider network error: {exc}") from exc
        except openai.RateLimitError as exc:
            raise GenerationRateLimitError(f"AI provider rate limit: {exc}") from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise GenerationConfigurationError(
                f"AI provider rejected credentials: {exc}"
            ) from exc
        except openai.APIStatusError as exc:
            raise self._map_status_error(exc, model_id) from exc
        except openai.APIError as exc:
            raise GenerationError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise GenerationError("AI returned no choices")
        content = response.choices[0].message.content
        if not content:
            raise GenerationError("AI returned empty content")
        return content

    @staticmethod
    def _map_status_error(exc: openai.APIStatusError, model_id: str) -> GenerationError:
        if getattr(exc, "code", None) == "model_not_found" or isinstance(
            exc, openai.NotFoundError
        ):
            return ModelUnavailableError(f"Model '{model_id}' is not available: {exc}")
        if exc.status_code >= 500:
            return GenerationServerError(
                f"AI provider server error ({exc.status_code}): {exc}"
            )
        return GenerationError(f"AI provider API error ({exc.status_code}): {exc}")
