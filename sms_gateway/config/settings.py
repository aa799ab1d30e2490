"""
Application settings and configuration.
All secrets are loaded from environment variables.
"""

from typing import Optional

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Shared secret the gateway appends to every callback as ?token=
    webhook_token: Optional[str] = None

    # MTN OCEP Configuration
    mtn_base_url: str = "https://sms01.umsg.co.za"
    mtn_username: Optional[str] = None
    mtn_password: Optional[str] = None
    mtn_timeout_seconds: float = 30.0

    # Database - Use DATA_DIR for persistent volumes
    data_dir: str = "."

    @property
    def database_url(self) -> str:
        """Database URL with support for persistent volumes."""
        return f"sqlite+aiosqlite:///{self.data_dir}/sms_gateway.db"

    @property
    def jobstore_url(self) -> str:
        """Synchronous SQLite URL for the scheduler job store."""
        return f"sqlite:///{self.data_dir}/jobs.db"

    # Retention of stored SMS rows
    message_retention_days: int = 90
    retention_interval_hours: int = 24

    # Application Settings
    debug: bool = False

    # Timezone (South African Standard Time)
    timezone: str = "Africa/Johannesburg"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
