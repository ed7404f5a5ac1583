from app.generation.client_base import BaseGenerationClient
from app.generation.factory import GenerationClientFactory
from app.generation.retry import RetryPolicy

__all__ = ["BaseGenerationClient", "GenerationClientFactory", "RetryPolicy"]
