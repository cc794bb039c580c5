"""Pydantic schemas for API responses."""
from typing import Optional

from pydantic import BaseModel

from license_webhooks.utils.webhook_signature import SecretSlot


class WebhookAck(BaseModel):
    """Acknowledgement returned for a verified delivery."""
    received: bool = True
    event: Optional[str] = None
    verified_with: SecretSlot


class WebhookError(BaseModel):
    """Body of a rejected delivery."""
    error: str


class HealthStatus(BaseModel):
    """Health check response."""
    status: str
    version: str
    app_name: str
