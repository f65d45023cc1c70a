"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from utils.config import settings

    department_ids = settings.department_ids
    file_name = settings.export_file_name()
"""

from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings


def split_ids(raw: str) -> list[str]:
    """Split a comma-separated identifier list, dropping blank entries."""
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Run mode ("local" writes to disk, anything else uploads over SFTP)
    ENV: str = Field(default="production")
    HTTPS_PROXY: str | None = Field(default=None)

    # WeCom API Configuration
    WECOM_API_BASE: str = Field(default="https://qyapi.weixin.qq.com/cgi-bin")
    API_TIMEOUT: int = Field(default=30, ge=0)
    CROP_ID: str = Field(default="")
    CROP_SECRET: str = Field(default="")
    DEPARTMENT_IDS: str = Field(default="")
    TAG_IDS: str = Field(default="")

    # Fetch Concurrency
    LIST_CONCURRENCY: int = Field(default=20, ge=1)
    CONTACT_CONCURRENCY: int = Field(default=5, ge=1)

    # Report Configuration
    EMAIL_DOMAIN: str = Field(default="merck.com")
    TAG_MARKER: str = Field(default="APP-研而有信")
    REPORT_TIMEZONE: str = Field(default="UTC")
    EXPORT_FILE_PREFIX: str = Field(default="Medical_External_Contact")
    LOCAL_OUTPUT_DIR: str = Field(default=".")

    # Scheduler Configuration
    EXPORT_SCHEDULE_CRON: str = Field(default="0 1 * * *")
    RUN_ONCE: bool = Field(default=False)

    # SFTP Configuration
    SFTP_HOST: str = Field(default="")
    SFTP_PORT: int = Field(default=22)
    SFTP_USERNAME: str = Field(default="")
    SFTP_PASSWORD: str = Field(default="")
    SFTP_KEY_PATH: str | None = Field(default=None)
    SFTP_KEY_PASSPHRASE: str | None = Field(default=None)
    SFTP_PATH: str = Field(default="/")
    SFTP_TIMEOUT: int = Field(default=15)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def is_local(self) -> bool:
        return self.ENV == "local"

    @property
    def proxy(self) -> str | None:
        return self.HTTPS_PROXY or None

    @property
    def department_ids(self) -> list[str]:
        return split_ids(self.DEPARTMENT_IDS)

    @property
    def tag_ids(self) -> list[str]:
        return split_ids(self.TAG_IDS)

    @property
    def report_tz(self) -> ZoneInfo:
        return ZoneInfo(self.REPORT_TIMEZONE)

    def export_file_name(self, today: date | None = None) -> str:
        """Build the export file name for the given run date.

        Args:
            today: Run date, defaults to the current date in REPORT_TIMEZONE

        Returns:
            File name such as Medical_External_Contact_20240131.csv
        """
        if today is None:
            today = datetime.now(self.report_tz).date()
        return f"{self.EXPORT_FILE_PREFIX}_{today.strftime('%Y%m%d')}.csv"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
