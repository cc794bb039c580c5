"""Exceptions raised when an inbound webhook is rejected."""

import enum

from fastapi import status


class ErrorKind(str, enum.Enum):
    """Why a webhook request was rejected."""

    MISSING_HEADER = "missing_header"
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    SIGNATURE_MISMATCH = "signature_mismatch"
    CONFIGURATION = "configuration"


class WebhookVerificationError(Exception):
    """
    Base class for webhook rejections.

    Attributes:
        reason: Message returned to the caller in the ``error`` field
        status_code: HTTP status code of the rejection response
        kind: Rejection classification, used for logging
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    kind = ErrorKind.SIGNATURE_MISMATCH

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class MissingHeaderError(WebhookVerificationError):
    """A required signature or timestamp header is absent."""

    kind = ErrorKind.MISSING_HEADER


class MalformedTimestampError(WebhookVerificationError):
    """The timestamp header could not be parsed."""

    kind = ErrorKind.MALFORMED_TIMESTAMP


class SignatureMismatchError(WebhookVerificationError):
    """The signature does not match, or the timestamp is outside tolerance."""

    kind = ErrorKind.SIGNATURE_MISMATCH


class WebhookConfigurationError(WebhookVerificationError):
    """No webhook secret is configured. This is a deployment fault, not an attack."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = ErrorKind.CONFIGURATION


_ERRORS_BY_KIND = {
    ErrorKind.MISSING_HEADER: MissingHeaderError,
    ErrorKind.MALFORMED_TIMESTAMP: MalformedTimestampError,
    ErrorKind.SIGNATURE_MISMATCH: SignatureMismatchError,
    ErrorKind.CONFIGURATION: WebhookConfigurationError,
}


def error_for(kind: ErrorKind, reason: str) -> WebhookVerificationError:
    """Build the exception matching a rejection classification."""
    return _ERRORS_BY_KIND[kind](reason)
