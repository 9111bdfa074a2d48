"""Core configuration settings for the chunk retrieval service."""

import hashlib
import json
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Chunk Retrieval", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    app_debug: bool = Field(default=False, alias="APP_DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Vector search service
    mvdb_endpoint: str = Field(default="", alias="MVDB_ENDPOINT")
    mvdb_access_token: str = Field(default="", alias="MVDB_ACCESS_TOKEN")
    mvdb_timeout_seconds: float = Field(default=30.0, alias="MVDB_TIMEOUT_SECONDS")
    mvdb_retry_attempts: int = Field(default=2, alias="MVDB_RETRY_ATTEMPTS")
    mvdb_cache_ttl: int = Field(default=3600, alias="MVDB_CACHE_TTL")
    mvdb_enable_debug_logging: bool = Field(
        default=False, alias="MVDB_ENABLE_DEBUG_LOGGING"
    )

    # Cache
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    memory_cache_max_items: int = Field(default=1000, ge=1, alias="MEMORY_CACHE_MAX_ITEMS")

    # Content
    allowed_post_types: list[str] = Field(
        default=["post", "page", "product", "attachment"],
        alias="ALLOWED_POST_TYPES",
    )

    # API
    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default=["*"])

    def config_hash(self) -> str:
        """Hash of every setting, used to invalidate cache keys on change."""
        content = json.dumps(self.model_dump(), sort_keys=True, default=str)
        return hashlib.sha256(content.encode()).hexdigest()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
