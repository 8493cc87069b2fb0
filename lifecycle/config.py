"""Lifecycle configuration using Pydantic Settings."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

ARCHIVE_REASONS = {
    "en": "Archived by user",
    "ar": "تم الأرشفة من قبل المستخدم",
}


class Settings(BaseSettings):
    """Settings loaded from ORDERS_* environment variables."""

    # Database
    database_url: str = Field(
        default="sqlite:///./orders.db",
        description="Database connection URL",
    )

    # Reconciliation
    settle_delay_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Wait before re-reading the store after a lifecycle write",
    )
    archive_recency_window_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Archives newer than this surface the archived view",
    )

    # Localization of the archive reason written to the store
    language: str = Field(default="en", pattern="^(en|ar)$")
    archive_reason_override: Optional[str] = Field(
        default=None,
        description="Archive reason to use instead of the localized default",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    class Config:
        env_prefix = "ORDERS_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def archive_reason(self) -> str:
        return self.archive_reason_override or ARCHIVE_REASONS[self.language]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
