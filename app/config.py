"""Application configuration via pydantic-settings."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import List, Literal, Optional

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
    app_name: str = "StayLedger"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "stayledger"
    postgres_password: str = Field(default="stayledger_secret")
    postgres_db: str = "stayledger"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    # Full async DSN, overrides the postgres_* parts (e.g. sqlite+aiosqlite for tests)
    database_dsn: Optional[str] = None

    @computed_field
    @property
    def database_url(self) -> str:
        """Async database connection URL."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @computed_field
    @property
    def sync_database_url(self) -> str:
        """Sync PostgreSQL connection URL for Alembic."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis (Celery broker)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # JWT Authentication (tokens are issued by the identity service)
    jwt_secret_key: str = Field(default="your-super-secret-key-change-in-production")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # Payment provider
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_webhook_tolerance: int = 300  # seconds

    # Email (SendGrid)
    sendgrid_api_key: Optional[str] = None
    email_from_address: str = "noreply@stayledger.app"
    email_from_name: str = "StayLedger"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Commission (percent deducted from the booking price)
    marketplace_commission_percent: Decimal = Decimal("10.00")
    default_currency: str = "EUR"

    # Withdrawals
    withdrawal_partial_threshold: Decimal = Decimal("50.00")
    mobile_money_pattern: str = r"^\+261\s?\d{2}\s?\d{2}\s?\d{3}\s?\d{2}$"

    # Booking lookup retry for dispute events
    booking_lookup_attempts: int = 4
    booking_lookup_base_delay: float = 0.5  # seconds
    booking_lookup_max_delay: float = 4.0  # seconds

    # Stay completion
    stay_completion_hour: int = 11


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
