"""Settings and configuration management."""

import logging
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Mail transport
    sendgrid_api_key: Optional[str] = Field(None, description="SendGrid key")
    from_email: str = Field("info@solo4ai.com", description="Sender address")
    from_name: str = Field("Solo4AI Newsletter", description="Sender name")

    # Unsubscribe links
    site_url: str = Field(
        "https://solo4ai.com", description="Public site hosting /unsubscribe"
    )
    unsubscribe_secret: Optional[str] = Field(
        None, description="Secret used to derive unsubscribe tokens"
    )

    # Batch dispatch
    batch_size: int = Field(
        10, ge=1, le=100, description="Recipients delivered concurrently per batch"
    )
    batch_delay: float = Field(
        1.0, ge=0.0, le=60.0, description="Seconds to wait between batches"
    )
    failure_report_limit: int = Field(
        5, ge=0, le=100, description="Failures listed in a send report"
    )

    # API Timeout Settings (in seconds)
    sendgrid_timeout: float = Field(
        30.0, ge=5.0, le=120.0, description="SendGrid API request timeout in seconds"
    )
    youtube_timeout: float = Field(
        5.0, ge=1.0, le=30.0, description="YouTube thumbnail probe timeout in seconds"
    )

    # Storage
    storage_dir: str = Field("newsletters", description="JSON newsletter store")

    # Application Settings
    debug: bool = Field(False, description="Debug mode")
    log_level: str = Field("INFO", description="Log level")

    @field_validator("site_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    def missing_transport_settings(self) -> List[str]:
        """Names of settings that must be present before a dispatch can start."""
        required = {
            "sendgrid_api_key": self.sendgrid_api_key,
            "from_email": self.from_email,
            "site_url": self.site_url,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            logger.debug(f"Missing transport settings: {', '.join(missing)}")
        return missing
