"""
Configuration and settings for the ministry site backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    env: str = Field(default="development", alias="MINISTRY_ENV")

    # Single admin identity. Either a plain password or a PBKDF2 hash + salt.
    admin_user: Optional[str] = Field(default=None, alias="ADMIN_USER")
    admin_pass: Optional[str] = Field(default=None, alias="ADMIN_PASS")
    admin_pass_hash: Optional[str] = Field(default=None, alias="ADMIN_PASS_HASH")
    admin_pass_salt: Optional[str] = Field(default=None, alias="ADMIN_PASS_SALT")

    # Key-value store (Redis)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    store_namespace: str = Field(default="ministry", alias="STORE_NAMESPACE")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="MINISTRY_USE_IN_MEMORY_BACKENDS"
    )

    session_duration_seconds: int = Field(default=7 * 24 * 60 * 60)
    csrf_token_max_age: int = Field(default=60 * 60)

    # Retention
    analytics_retention_days: int = Field(
        default=90, alias="ANALYTICS_RETENTION_DAYS"
    )
    prayed_prayer_retention_days: int = Field(
        default=30, alias="PRAYED_PRAYER_RETENTION_DAYS"
    )
    analytics_salt: str = Field(default="salt-twp", alias="ANALYTICS_SALT")

    # YouTube RSS feed
    youtube_channel_id: Optional[str] = Field(
        default=None, alias="YOUTUBE_CHANNEL_ID"
    )
    youtube_cache_seconds: int = Field(default=60 * 60)

    site_url: str = Field(default="http://localhost:8000", alias="SITE_URL")
    ministry_name: str = Field(default="Two Witness Project", alias="MINISTRY_NAME")

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() in ("prod", "production")

    @property
    def has_persistent_store(self) -> bool:
        return bool(self.redis_url) and not self.use_in_memory_backends

    @property
    def uses_hashed_password(self) -> bool:
        return bool(self.admin_pass_hash and self.admin_pass_salt)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
