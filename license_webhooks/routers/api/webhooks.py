# ruff: noqa: B008
"""Endpoint receiving License Management webhook deliveries."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from license_webhooks.config import settings
from license_webhooks.schemas import WebhookAck, WebhookError
from license_webhooks.security import EnsureIsFromLicenseManagement
from license_webhooks.utils.sanitization import sanitize_for_log
from license_webhooks.utils.webhook_signature import VerificationResult

logger = logging.getLogger(__name__)

verify_webhook = EnsureIsFromLicenseManagement()

router = APIRouter(tags=["webhooks"])

_REJECTIONS = {
    status.HTTP_401_UNAUTHORIZED: {"model": WebhookError},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": WebhookError},
}


@router.post(settings.webhook_path, response_model=WebhookAck, responses=_REJECTIONS)
async def receive_webhook(
    request: Request,
    verification: VerificationResult = Depends(verify_webhook),
):
    """
    Receive a signed License Management event.

    The body is re-read after verification; it is the exact byte sequence
    that was signed.
    """
    body = await request.body()
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Verified webhook carried an invalid JSON body: {sanitize_for_log(str(e))}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook body is not valid JSON"
        ) from e

    event = None
    if isinstance(payload, dict):
        event = payload.get("event") or payload.get("type")
        if event is not None:
            event = str(event)

    logger.info(f"Received webhook event {sanitize_for_log(event) or 'unknown'}")
    return WebhookAck(event=event, verified_with=verification.matched_secret)
