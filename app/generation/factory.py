from typing import ClassVar

from app.config.settings import Settings
from app.generation.client_base import BaseGenerationClient
from app.generation.example_client_adapter import ExampleClientAdapter
from app.generation.exceptions import GenerationConfigurationError
from app.generation.openai_client_adapter import OpenAIClientAdapter


class GenerationClientFactory:
    """Creates the configured generation client and resolves its model list."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseGenerationClient:
        """Create a configured generation client from application settings.

        Raises:
            GenerationConfigurationError: on unknown provider or missing credentials.
        """
        provider = settings.generation_provider.lower()
        if provider == "example":
            return ExampleClientAdapter()
        base_url = cls._resolve_base_url(provider, settings)
        api_key = cls._resolve_api_key(provider, settings)
        if not api_key:
            raise GenerationConfigurationError(
                f"API key is required for generation_provider={provider}"
            )
        return OpenAIClientAdapter(
            api_key=api_key,
            timeout_seconds=settings.generation_openai_timeout_seconds,
            base_url=base_url,
        )

    @classmethod
    def model_ids(cls, settings: Settings) -> tuple[str, ...]:
        """Ordered model identifiers: configured model first, then fallbacks."""
        provider = settings.generation_provider.lower()
        if provider == "example":
            return ("example",)
        key_map = {
            "openai": settings.generation_openai_model_name,
            "openai_compatible": settings.generation_openai_compatible_model_name,
            "openrouter": settings.generation_openrouter_model_name,
            "groq": settings.generation_groq_model_name,
            "ollama": settings.generation_ollama_model_name,
        }
        primary = key_map.get(provider, "")
        if not primary:
            raise GenerationConfigurationError(
                f"Model name is required for generation_provider={provider}"
            )
        fallbacks = settings.generation_fallback_model_names if provider == "openai" else []
        ordered = [primary, *(name for name in fallbacks if name)]
        return tuple(dict.fromkeys(ordered))

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "openai_compatible":
            url = (settings.generation_openai_compatible_base_url or "").strip()
            if not url:
                raise GenerationConfigurationError(
                    "generation_openai_compatible_base_url is required for "
                    "generation_provider=openai_compatible"
                )
            return url
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return default_base_url
        supported = [
            "example",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise GenerationConfigurationError(
            f"Unknown generation provider '{provider}'. Choose from: {supported}"
        )

    @classmethod
    def _resolve_api_key(cls, provider: str, settings: Settings) -> str:
        key_map = {
            "openai": settings.generation_openai_api_key,
            "openai_compatible": settings.generation_openai_compatible_api_key,
            "openrouter": settings.generation_openrouter_api_key,
            "groq": settings.generation_groq_api_key,
            "ollama": settings.generation_ollama_api_key,
        }
        return key_map.get(provider, "") or ""
