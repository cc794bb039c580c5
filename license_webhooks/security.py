"""Authentication of inbound License Management webhook requests."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from license_webhooks.config import WebhookOptions, settings
from license_webhooks.exceptions import ErrorKind, WebhookVerificationError, error_for
from license_webhooks.utils.sanitization import sanitize_for_log
from license_webhooks.utils.webhook_signature import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    VerificationResult,
    VerificationStatus,
    parse_timestamp,
    verify_signature,
    verify_signature_with_fallback,
)

logger = logging.getLogger(__name__)

MISSING_SIGNATURE = "Missing signature header"
MISSING_TIMESTAMP = "Missing timestamp header"
INVALID_SIGNATURE = "Invalid webhook signature"
NOT_CONFIGURED = "Webhook verification is not configured"


@dataclass(frozen=True)
class WebhookDecision:
    """Accept/reject outcome for a single inbound request."""

    accepted: bool
    status_code: int = status.HTTP_200_OK
    reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    result: Optional[VerificationResult] = None

    @classmethod
    def accept(cls, result: VerificationResult) -> "WebhookDecision":
        return cls(accepted=True, result=result)

    @classmethod
    def reject(
        cls, kind: ErrorKind, reason: str, result: Optional[VerificationResult] = None
    ) -> "WebhookDecision":
        return cls(
            accepted=False,
            status_code=error_for(kind, reason).status_code,
            reason=reason,
            error_kind=kind,
            result=result,
        )

    @property
    def error(self) -> Optional[WebhookVerificationError]:
        """The exception matching this rejection, or None when accepted."""
        if self.accepted:
            return None
        return error_for(self.error_kind, self.reason)


class RequestAuthenticator:
    """
    Verify that a request was sent by License Management.

    Validates:
    - the X-Webhook-Signature header carries a valid HMAC-SHA256 signature
    - the X-Webhook-Timestamp header is within the tolerance window

    The raw body is read through Starlette, which caches it on the request, so
    downstream handlers receive the same bytes.
    """

    def __init__(self, options: WebhookOptions, logger: Optional[logging.Logger] = None):
        self.options = options
        self.logger = logger or logging.getLogger(__name__)

    async def authenticate(self, request: Request) -> WebhookDecision:
        path = sanitize_for_log(request.url.path)

        signature = request.headers.get(SIGNATURE_HEADER)
        timestamp = request.headers.get(TIMESTAMP_HEADER)

        if not signature:
            self.logger.warning(f"Webhook request to {path} rejected: missing {SIGNATURE_HEADER} header")
            return WebhookDecision.reject(ErrorKind.MISSING_HEADER, MISSING_SIGNATURE)

        if not timestamp:
            self.logger.warning(f"Webhook request to {path} rejected: missing {TIMESTAMP_HEADER} header")
            return WebhookDecision.reject(ErrorKind.MISSING_HEADER, MISSING_TIMESTAMP)

        body = await request.body()

        if not self.options.secret:
            self.logger.error("Webhook configuration error: no webhook secret configured")
            return WebhookDecision.reject(ErrorKind.CONFIGURATION, NOT_CONFIGURED)

        if self.options.secondary_secret:
            result = verify_signature_with_fallback(
                body,
                signature,
                timestamp,
                self.options.secret,
                self.options.secondary_secret,
                self.options.tolerance,
            )
        else:
            result = verify_signature(
                body, signature, timestamp, self.options.secret, self.options.tolerance
            )

        if not result.is_valid:
            kind = ErrorKind.SIGNATURE_MISMATCH
            if result.status is VerificationStatus.MALFORMED_INPUT and parse_timestamp(timestamp) is None:
                kind = ErrorKind.MALFORMED_TIMESTAMP
            self.logger.warning(
                f"Webhook request to {path} rejected: {kind.value} ({result.status.value})"
            )
            return WebhookDecision.reject(kind, INVALID_SIGNATURE, result)

        self.logger.debug(
            f"Webhook signature verified for {path} with {result.matched_secret.value} secret"
        )
        return WebhookDecision.accept(result)


class EnsureIsFromLicenseManagement:
    """
    Dependency that rejects requests not signed by License Management.

    Apply per endpoint or per router:
        router = APIRouter(dependencies=[Depends(EnsureIsFromLicenseManagement())])
    """

    def __init__(self, options: Optional[WebhookOptions] = None):
        self.options = options

    async def __call__(self, request: Request) -> VerificationResult:
        options = self.options or settings.webhook_options()
        decision = await RequestAuthenticator(options, logger).authenticate(request)
        if not decision.accepted:
            raise decision.error
        request.state.webhook_verification = decision.result
        return decision.result


class WebhookSignatureMiddleware(BaseHTTPMiddleware):
    """Verify webhook signatures for every request under the protected path prefixes."""

    def __init__(
        self,
        app,
        protected_paths: Iterable[str],
        options: Optional[WebhookOptions] = None,
    ):
        super().__init__(app)
        self.protected_paths = tuple(protected_paths)
        self.options = options

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(self.protected_paths):
            return await call_next(request)

        options = self.options or settings.webhook_options()
        decision = await RequestAuthenticator(options, logger).authenticate(request)
        if not decision.accepted:
            return JSONResponse(status_code=decision.status_code, content={"error": decision.reason})

        request.state.webhook_verification = decision.result
        return await call_next(request)


async def webhook_verification_exception_handler(
    request: Request, exc: WebhookVerificationError
) -> JSONResponse:
    """Render a webhook rejection as ``{"error": "<reason>"}``."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.reason})


def register_webhook_exception_handler(app: FastAPI) -> None:
    """Install the rejection handler on an application."""
    app.add_exception_handler(WebhookVerificationError, webhook_verification_exception_handler)
