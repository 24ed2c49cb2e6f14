"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "placement_user"
    postgres_password: str = "password"
    postgres_db: str = "placement"

    # MongoDB (job results + dead-lettered jobs)
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "placement_jobs"

    # Celery
    celery_broker_url: str = "redis://127.0.0.1:6379/0"
    celery_result_backend: str = "mongodb://localhost:27017/placement_jobs"
    jobs_enabled: bool = True

    # Job retry budgets
    job_attempts: int = 3
    maintenance_job_attempts: int = 2
    job_retry_backoff_seconds: int = 5
    materialized_view_refresh_seconds: float = 3600.0
    materialized_views_sql_path: str = "scripts/materialized_views.sql"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 480

    # Files
    uploads_dir: str = "uploads"
    exports_dir: str = "uploads/temp"
    max_upload_mb: int = 10

    # Analytics cache (Redis)
    redis_url: str = "redis://127.0.0.1:6379/1"
    analytics_cache_ttl_seconds: int = 30

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
