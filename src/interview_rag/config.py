from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyHttpUrl, Field


class Settings(BaseSettings):
    # Local inference service (Ollama)
    ollama_host: AnyHttpUrl = "http://127.0.0.1:11434"

    embedding_model: str = "nomic-embed-text"
    default_chat_model: str = "llama3"

    # Embedding batching / retry
    embed_batch_size: int = Field(default=32, ge=1, le=256)
    embed_max_attempts: int = Field(default=3, ge=1)
    embed_backoff_base: float = Field(default=0.5, ge=0.0)  # seconds
    embed_max_chars: int = Field(default=4000, ge=1)

    # HTTP timeouts (seconds)
    request_timeout: float = 30.0
    completion_timeout: float = 120.0

    # Retrieval
    top_k: int = Field(default=5, ge=1, le=50)

    log_level: str = "INFO"
    log_level_http: str = "WARNING"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def ollama_base_url(self) -> str:
        return str(self.ollama_host).rstrip("/")


settings = Settings()
