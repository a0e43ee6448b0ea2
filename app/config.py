"""Application configuration via pydantic-settings."""

from __future__ import annotations

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
    app_name: str = "Staybook Bookings"
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
    postgres_user: str = "staybook"
    postgres_password: str = Field(default="staybook_secret")
    postgres_db: str = "staybook"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    database_url_override: Optional[str] = None

    @computed_field
    @property
    def database_url(self) -> str:
        """Async database connection URL."""
        if self.database_url_override:
            return self.database_url_override
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

    # Redis
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

    # JWT (tokens are issued by the identity service, only verified here)
    jwt_secret_key: str = Field(default="your-super-secret-key-change-in-production")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # AWS S3
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "ap-southeast-3"
    s3_bucket_name: str = "staybook-media"
    s3_endpoint_url: Optional[str] = None  # For MinIO in dev

    # Catalog service
    catalog_base_url: str = "http://localhost:8100/api"
    catalog_timeout_seconds: float = 5.0
    default_currency: str = "IDR"

    # Notification service (renders and delivers email/push to users)
    notification_base_url: Optional[str] = None
    notification_api_key: Optional[str] = None
    notification_timeout_seconds: float = 10.0
    notification_retry_delay_seconds: int = 60

    # Booking lifecycle
    ledger_backend: Literal["sql", "memory"] = "sql"  # memory: single-process dev only
    transition_max_attempts: int = 3
    ledger_timeout_seconds: float = 5.0
    payment_proof_max_bytes: int = 1024 * 1024  # 1MB
    payment_proof_extensions: List[str] = ["jpg", "jpeg", "png"]

    # Scheduler
    completion_sweep_hour: int = 1
    completion_batch_size: int = 200
    timezone: str = "Asia/Jakarta"

    # Rate limiting (Redis sliding window)
    rate_limit_per_minute: int = 100
    booking_rate_limit_per_minute: int = 10

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
