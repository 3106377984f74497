"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Record store
    DATABASE_URL: str = "postgresql+asyncpg://leadops:leadops@db:5432/leadops"
    STORE_TIMEOUT_SECONDS: float = 5.0

    # Redis (shared round-robin cursors)
    REDIS_URL: str = "redis://redis:6379/0"

    # Deduplication
    DEDUPE_EMAIL_SALT: str  # required, never compiled in
    DEDUPE_TIME_WINDOW_HOURS: Optional[int] = 24 * 7
    DEDUPE_NAME_SIMILARITY_THRESHOLD: float = 0.8
    DEDUPE_DOMAIN_NAME_THRESHOLD: float = 0.7
    DEDUPE_NAME_SAMPLE_LIMIT: int = 100
    DEDUPE_DERIVE_COMPANY_DOMAIN: bool = True

    # Routing
    ROUTING_DEFAULT_POOL: str = "DEFAULT"
    ROUTING_OWNER_PREFIX: str = "owner_"
    ROUTING_OWNER_ID_MIN_LENGTH: int = 21
    ROUTING_CURSOR_BACKEND: str = "memory"  # memory | redis

    # Alerts
    ALERT_WEBHOOK_URL: Optional[str] = None
    ALERT_WEBHOOK_TIMEOUT_SECONDS: float = 5.0


settings = Settings()
