from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    storage_backend: str = "memory"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "clinote"
    db_username: str = "clinote"
    db_password: str = "secret"

    # base64-encoded 32-byte AES key
    encryption_key: str = ""

    generation_provider: str = "openai"
    generation_openai_api_key: str = ""
    generation_openai_model_name: str = "gpt-5-chat-latest"
    generation_openai_timeout_seconds: int = 60
    generation_openai_compatible_base_url: str = ""
    generation_openai_compatible_api_key: str = ""
    generation_openai_compatible_model_name: str = ""
    generation_openrouter_api_key: str = ""
    generation_openrouter_model_name: str = ""
    generation_groq_api_key: str = ""
    generation_groq_model_name: str = ""
    generation_ollama_api_key: str = "ollama"
    generation_ollama_model_name: str = ""
    generation_fallback_model_names: list[str] = ["gpt-4o"]

    generation_temperature: float = 0.3
    generation_max_tokens: int = 1000
    generation_case_summary_max_tokens: int = 1500
    generation_concurrency: int = 3
    generation_dispatch_delay_ms: int = 200
    generation_max_retries: int = 4
    generation_retry_base_delay_seconds: float = 1.0
    generation_retry_max_delay_seconds: float = 8.0
    generation_call_timeout_seconds: float = 60.0

    rate_limit_backend: str = "memory"
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
