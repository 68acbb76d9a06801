"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./hotelbooking.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="Secret shared with the identity provider")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    room_cache_ttl: int = Field(default=60, description="TTL (s) for the cached public room list")

    store_timeout_seconds: float = Field(default=5.0, description="Upper bound for a single database round trip")
    room_lock_timeout_seconds: float = Field(
        default=10.0,
        description="How long a booking request waits for the per-room lock before giving up",
    )
    store_retry_attempts: int = Field(default=3, description="Attempts for retryable store calls")
    store_retry_backoff_seconds: float = Field(default=0.1, description="Initial backoff between store retries")
    recent_cities_limit: int = Field(default=3, description="How many recently searched cities are kept per user")

    bookings_service_port: int = 8001
    hotels_service_port: int = 8002


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
