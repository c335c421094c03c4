"""
Application settings and configuration management.

Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Interview Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # LLM oracle (OpenAI-compatible chat completions)
    llm_base_url: str = "https://api.openai.com"
    llm_api_key: str = ""
    llm_chat_endpoint: str = "/v1/chat/completions"
    llm_model: str = "gpt-4o"
    llm_timeout_seconds: float = Field(default=30.0, gt=0)
    llm_temperature: float = Field(default=0.3, ge=0, le=2)

    # Langfuse tracing
    langfuse_enabled: bool = False
    langfuse_secret_key: str = ""
    langfuse_public_key: str = ""
    langfuse_base_url: str = "https://cloud.langfuse.com"

    # Code execution sandbox (Judge0)
    judge0_api_url: str = "http://localhost:2358"
    judge0_api_key: str = ""
    sandbox_timeout_ms: int = Field(default=10000, gt=0)
    sandbox_memory_limit_mb: int = Field(default=128, gt=0)

    # Evaluation pipeline
    evaluation_max_attempts: int = Field(default=3, ge=3)
    evaluation_backoff_seconds: float = Field(default=2.0, ge=0)
    evaluation_backoff_max_seconds: float = Field(default=30.0, ge=0)
    evaluation_workers: int = Field(default=4, ge=1)

    # Linear interviews
    adaptive_high_threshold: float = 75.0
    adaptive_low_threshold: float = 40.0
    adaptive_recent_window: int = Field(default=3, ge=1)
    default_passing_percent: int = 70
    integrity_flag_threshold: int = 5

    # Panel interviews
    panel_pass_threshold: int = 60
    followup_score_threshold: float = 7.0
    warmup_question_count: int = 2
    core_question_count: int = 6
    coding_question_count: int = 1
    query_question_count: int = 1
    core_adapt_min_answers: int = 3
    core_strong_average: float = 7.5
    core_weak_average: float = 4.0
    core_strong_count: int = 7
    core_weak_count: int = 5

    # Notifications
    notifications_enabled: bool = True

    # CORS - stored as comma-separated string in env
    # Uses validation_alias to read from CORS_ORIGINS env var
    cors_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        validation_alias="cors_origins"
    )

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
