"""Application configuration."""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    anthropic_api_key: str = ""
    supabase_url: str = ""
    supabase_key: str = ""

    ai_provider: str = "anthropic"
    ai_model: str = "claude-3-5-haiku-latest"
    ai_max_tokens: int = 4096
    generation_timeout_seconds: float = 45.0

    # Optional OpenAI-compatible embeddings endpoint for semantic similarity
    embedding_api_key: Optional[str] = None
    embedding_api_url: str = "https://api.openai.com/v1/embeddings"
    embedding_model: str = "text-embedding-3-small"
    embedding_timeout_seconds: float = 20.0

    voice_engine_debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"


settings = Settings()
