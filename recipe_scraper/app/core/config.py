import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    llm_base_url: str | None = Field(None, alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(None, alias="LLM_API_KEY")
    llm_model_name: str = Field("full", alias="LLM_MODEL_NAME")
    llm_temperature: float = Field(0.15, alias="LLM_TEMPERATURE")
    llm_max_output_tokens: int = Field(1024, alias="LLM_MAX_OUTPUT_TOKENS")
    llm_request_timeout_seconds: float = Field(8.0, alias="LLM_REQUEST_TIMEOUT_SECONDS")
    llm_retry_timeout_seconds: float = Field(12.0, alias="LLM_RETRY_TIMEOUT_SECONDS")
    llm_max_attempts: int = Field(3, alias="LLM_MAX_ATTEMPTS")
    llm_max_context_chars: int = Field(5000, alias="LLM_MAX_CONTEXT_CHARS")
    llm_shrunk_context_chars: int = Field(3500, alias="LLM_SHRUNK_CONTEXT_CHARS")
    llm_cache_ttl_seconds: int = Field(24 * 60 * 60, alias="LLM_CACHE_TTL_SECONDS")
    llm_enrichment_enabled: bool = Field(True, alias="LLM_ENRICHMENT_ENABLED")
    fetch_timeout_seconds: float = Field(12.0, alias="FETCH_TIMEOUT_SECONDS")
    scraper_user_agent: str = Field(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_6) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
        alias="SCRAPER_USER_AGENT",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    return settings
