"""Application configuration."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = "development"
    database_url: str

    # Redis (progress pub/sub). Empty string disables publishing.
    redis_url: str = "redis://localhost:6379/0"

    # JWT verification for bearer tokens
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    # File storage
    upload_dir: str = "uploads/temp"
    reports_dir: str = "uploads/reports"
    max_upload_size: int = 10 * 1024 * 1024

    # Background jobs
    upload_batch_size: int = 500
    report_ttl_hours: int = 24
    jobs_list_limit: int = 50

    log_file: str = "app.log"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
