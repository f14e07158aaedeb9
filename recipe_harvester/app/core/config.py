import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    llm_base_url: str | None = Field(None, alias="LLM_BASE_URL")
    llm_model_name: str = Field("full", alias="LLM_MODEL_NAME")
    llm_app_id: str | None = Field(None, alias="LLM_APP_ID")
    llm_app_key: str | None = Field(None, alias="LLM_APP_KEY")
    llm_timeout_seconds: float = Field(90.0, alias="LLM_TIMEOUT_SECONDS")
    scraper_cookies: str | None = Field(None, alias="SCRAPER_COOKIES")
    fetch_timeout_seconds: float = Field(15.0, alias="FETCH_TIMEOUT_SECONDS")
    fetch_retries: int = Field(3, alias="FETCH_RETRIES")
    fetch_retry_delay_seconds: float = Field(2.0, alias="FETCH_RETRY_DELAY_SECONDS")
    # Process-wide spacing between outgoing page requests
    fetch_min_interval_seconds: float = Field(1.0, alias="FETCH_MIN_INTERVAL_SECONDS")
    image_resolution_enabled: bool = Field(True, alias="IMAGE_RESOLUTION_ENABLED")
    image_fetch_timeout_seconds: float = Field(12.0, alias="IMAGE_FETCH_TIMEOUT_SECONDS")
    image_fetch_retries: int = Field(2, alias="IMAGE_FETCH_RETRIES")
    image_fetch_delay_seconds: float = Field(1.5, alias="IMAGE_FETCH_DELAY_SECONDS")
    image_head_timeout_seconds: float = Field(8.0, alias="IMAGE_HEAD_TIMEOUT_SECONDS")
    image_min_bytes: int = Field(15 * 1024, alias="IMAGE_MIN_BYTES")
    redis_url: str | None = Field(None, alias="REDIS_URL")
    recipe_cache_ttl_seconds: int = Field(30 * 24 * 3600, alias="RECIPE_CACHE_TTL_SECONDS")
    ai_cache_ttl_seconds: int = Field(7 * 24 * 3600, alias="AI_CACHE_TTL_SECONDS")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    return settings
