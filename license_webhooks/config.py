"""Application configuration."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from pydantic_settings import BaseSettings

from license_webhooks.utils.webhook_signature import DEFAULT_TIMESTAMP_TOLERANCE


@dataclass(frozen=True)
class WebhookOptions:
    """Secrets and tolerance used to verify webhook signatures."""

    # Primary signing secret, returned when the webhook is created
    secret: str = ""
    # Previous secret, accepted alongside the primary while rotating
    secondary_secret: Optional[str] = None
    timestamp_tolerance: Optional[timedelta] = None

    @property
    def tolerance(self) -> timedelta:
        if self.timestamp_tolerance is None:
            return DEFAULT_TIMESTAMP_TOLERANCE
        return self.timestamp_tolerance


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "License Webhook Receiver"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # Webhook verification
    webhook_secret: str = ""
    webhook_secondary_secret: Optional[str] = None
    webhook_timestamp_tolerance: Optional[timedelta] = None
    webhook_path: str = "/api/v1/webhooks/license-management"

    class Config:
        env_file = ".env"
        env_prefix = "LICENSE_MANAGEMENT_"
        case_sensitive = False

    def webhook_options(self) -> WebhookOptions:
        """Snapshot the webhook settings as immutable options."""
        return WebhookOptions(
            secret=self.webhook_secret,
            secondary_secret=self.webhook_secondary_secret or None,
            timestamp_tolerance=self.webhook_timestamp_tolerance,
        )


settings = Settings()
