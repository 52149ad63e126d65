from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class _SectionSettings(BaseSettings):
    """Settings section that reads its own flat environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


class JobQueueSettings(_SectionSettings):
    """Job queue backend configuration.

    The durable Celery backend is used only when ``redis_url`` is set.
    """

    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("QUEUE_REDIS_URL", "JOBS__REDIS_URL"),
    )
    poll_interval: float = Field(
        default=0.1,
        validation_alias=AliasChoices("JOB_POLL_INTERVAL", "JOBS__POLL_INTERVAL"),
    )
    result_ttl: int = Field(
        default=86400,
        validation_alias=AliasChoices("JOB_RESULT_TTL", "JOBS__RESULT_TTL"),
    )
    max_retained: int | None = Field(
        default=None,
        validation_alias=AliasChoices("JOB_MAX_RETAINED", "JOBS__MAX_RETAINED"),
    )
    concurrency: int = Field(
        default=4,
        validation_alias=AliasChoices("CELERY_CONCURRENCY", "JOBS__CONCURRENCY"),
    )
    task_time_limit: int = Field(
        default=600,
        validation_alias=AliasChoices("JOB_TIME_LIMIT", "JOBS__TASK_TIME_LIMIT"),
    )

    @field_validator("poll_interval", "result_ttl", "concurrency", "task_time_limit")
    @classmethod
    def _must_be_positive(cls, value):
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @field_validator("max_retained")
    @classmethod
    def _retain_at_least_one(cls, value):
        if value is not None and value < 1:
            raise ValueError("must be >= 1")
        return value

    @property
    def is_durable(self) -> bool:
        return bool(self.redis_url and self.redis_url.strip())


class CacheSettings(_SectionSettings):
    redis_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CACHE_REDIS_URL", "CACHE__REDIS_URL"),
    )
    ttl_seconds: int | None = Field(
        default=None,
        validation_alias=AliasChoices("CACHE_TTL_SECONDS", "CACHE__TTL_SECONDS"),
    )
    memory_max_entries: int = Field(
        default=1024,
        validation_alias=AliasChoices("CACHE_MEMORY_MAX_ENTRIES", "CACHE__MEMORY_MAX_ENTRIES"),
    )


class AnalysisSettings(_SectionSettings):
    """Hosted text-generation endpoint (Hugging Face TGI compatible)."""

    api_base: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ANALYSIS_API_BASE", "ANALYSIS__API_BASE"),
    )
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("ANALYSIS_API_KEY", "ANALYSIS__API_KEY"),
    )
    max_new_tokens: int = Field(
        default=1024,
        validation_alias=AliasChoices("ANALYSIS_MAX_NEW_TOKENS", "ANALYSIS__MAX_NEW_TOKENS"),
    )
    temperature: float = Field(
        default=0.2,
        validation_alias=AliasChoices("ANALYSIS_TEMPERATURE", "ANALYSIS__TEMPERATURE"),
    )

    def resolved_base_url(self) -> str:
        base = (self.api_base or "").strip()
        if base.endswith("/v1"):
            base = base[:-3]
        return base or "http://text-generation"

    def resolved_token(self) -> str | None:
        if self.api_key is None:
            return None
        token = self.api_key.get_secret_value().strip()
        if not token or token == "-":
            return None
        return token


class SummarizationSettings(_SectionSettings):
    max_chunk_chars: int = Field(
        default=12000,
        validation_alias=AliasChoices("SUMMARY_MAX_CHUNK_CHARS", "SUMMARIZATION__MAX_CHUNK_CHARS"),
    )
    retry_max_attempts: int = Field(
        default=3,
        validation_alias=AliasChoices("RETRY_MAX_ATTEMPTS", "SUMMARIZATION__RETRY_MAX_ATTEMPTS"),
    )
    retry_base_delay: float = Field(
        default=1.0,
        validation_alias=AliasChoices("RETRY_BASE_DELAY", "SUMMARIZATION__RETRY_BASE_DELAY"),
    )

    @field_validator("max_chunk_chars", "retry_max_attempts")
    @classmethod
    def _must_be_positive(cls, value):
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @field_validator("retry_base_delay")
    @classmethod
    def _must_not_be_negative(cls, value):
        if value < 0:
            raise ValueError("must be >= 0")
        return value


class EmbeddingSettings(_SectionSettings):
    api_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("EMBEDDING_API_URL", "GEMINI_API_URL", "EMBEDDINGS__API_URL"),
    )
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("EMBEDDING_API_KEY", "GEMINI_API_KEY", "EMBEDDINGS__API_KEY"),
    )
    timeout: float = Field(
        default=30.0,
        validation_alias=AliasChoices("EMBEDDING_TIMEOUT", "EMBEDDINGS__TIMEOUT"),
    )

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.api_key.get_secret_value())


class AppSettings(BaseSettings):
    """Application configuration loaded from environment variables.

    Uses pydantic-settings to support .env and environment overrides.
    """

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    jobs: JobQueueSettings = Field(default_factory=JobQueueSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    summarization: SummarizationSettings = Field(default_factory=SummarizationSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
