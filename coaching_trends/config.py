"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM
    anthropic_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 8192
    llm_temperature: float = 0.3
    summarizer_timeout_seconds: float = 55.0

    # Analysis tiers
    direct_analysis_max: int = 50  # <= this many calls are analyzed directly
    sampling_max: int = 100  # <= this many calls are sampled, above is hierarchical
    chunk_max_size: int = 25
    chunk_concurrency: int = 4

    # Sampling policy
    sample_bucket_days: int = 7
    sample_extreme_share: float = 0.5

    # Cache
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 512

    # Rate limiting (per caller)
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: float = 60.0

    # Comparison controller
    date_change_debounce_seconds: float = 0.5

    # Arize Observability
    arize_space_id: str = ""
    arize_api_key: str = ""
    arize_project_name: str = "coaching-trends"

    # Database
    database_url: str = "sqlite:///coaching_trends.db"

    # App settings
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
