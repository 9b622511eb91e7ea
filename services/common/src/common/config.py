"""Application-wide configuration management using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration shared by the console packages.

    Environment variables allow overrides per deployment (``API_BASE_URL``,
    ``REDIS_URL`` and so on).
    """

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", extra="allow")

    environment: str = "development"
    service_name: str = "brokerage-console"
    log_level: str = "INFO"

    # Brokerage REST API
    api_base_url: str = "http://localhost:8080/spring-api"
    api_bearer_token: Optional[str] = None
    http_timeout_seconds: float = 30.0
    media_fetch_timeout_seconds: float = 20.0

    # Public administrative-division API (province / district / ward)
    provinces_api_base_url: str = "https://provinces.open-api.vn"

    # Session media cache
    redis_url: str = "redis://localhost:6379/0"
    media_cache_backend: str = "redis"  # redis | memory
    media_cache_ttl_seconds: int = 3600

    # Address line composition
    address_separator: str = ", "


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache configuration for the current process."""

    return Settings()  # type: ignore[arg-type]


settings = get_settings()
