"""HMAC-SHA256 signing and verification of License Management webhooks."""

import enum
import hashlib
import hmac
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Union

# Default tolerance for timestamp validation (5 minutes)
DEFAULT_TIMESTAMP_TOLERANCE = timedelta(minutes=5)

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
SIGNATURE_PREFIX = "sha256="

# datetime only accepts microsecond precision; .NET round-trip output carries seven digits
_FRACTION_RE = re.compile(r"\.(\d+)")

BytesOrStr = Union[bytes, bytearray, memoryview, str]
_BYTES_LIKE = (bytes, bytearray, memoryview)
_SIGNABLE = _BYTES_LIKE + (str,)


class VerificationStatus(str, enum.Enum):
    """Outcome of a single verification attempt."""

    VALID = "valid"
    INVALID_SIGNATURE = "invalid_signature"
    STALE_TIMESTAMP = "stale_timestamp"
    MALFORMED_INPUT = "malformed_input"


class SecretSlot(str, enum.Enum):
    """Which configured secret produced a match."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    matched_secret: Optional[SecretSlot] = None

    @property
    def is_valid(self) -> bool:
        return self.status is VerificationStatus.VALID


def _to_bytes(value: BytesOrStr) -> bytes:
    if isinstance(value, _BYTES_LIKE):
        return bytes(value)
    return value.encode("utf-8", errors="surrogatepass")


def compute_signature(payload: BytesOrStr, secret: BytesOrStr, timestamp: str) -> str:
    """
    Compute the expected signature for a payload.

    The signed material is ``<timestamp>.<payload>``, which binds the timestamp
    into the digest so that neither can be swapped independently.

    Args:
        payload: Raw request body, exactly as transmitted
        secret: Webhook signing secret
        timestamp: Value of the X-Webhook-Timestamp header

    Returns:
        Lowercase hex HMAC-SHA256 digest
    """
    signed_payload = _to_bytes(timestamp) + b"." + _to_bytes(payload)
    return hmac.new(_to_bytes(secret), signed_payload, hashlib.sha256).hexdigest()


def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 round-trip timestamp into an aware UTC datetime.

    Timestamps without an offset are taken as UTC. Returns None when the
    value cannot be parsed or its UTC instant is outside the datetime range.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        # Offsets near year 1 or 9999 can shift the instant out of range
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def validate_timestamp(
    timestamp: str,
    tolerance: timedelta = DEFAULT_TIMESTAMP_TOLERANCE,
    now: Optional[datetime] = None,
) -> bool:
    """
    Check that a timestamp lies within ``tolerance`` of now, in either direction.

    Args:
        timestamp: ISO-8601 timestamp string
        tolerance: Maximum allowed skew
        now: Reference time (defaults to the current UTC time)

    Returns:
        True if the timestamp parses and is within tolerance
    """
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return False

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)

    difference = (current - parsed).total_seconds()
    return abs(difference) <= tolerance.total_seconds()


def constant_time_equals(a: str, b: str) -> bool:
    """
    Compare two strings without leaking the position of the first mismatch.

    Unequal lengths return False immediately; digest length is fixed for the
    algorithm and therefore public. Equal-length inputs go through
    hmac.compare_digest, which scans every byte regardless of where they differ.
    """
    a_bytes = a.encode("utf-8", errors="surrogatepass")
    b_bytes = b.encode("utf-8", errors="surrogatepass")
    if len(a_bytes) != len(b_bytes):
        return False
    return hmac.compare_digest(a_bytes, b_bytes)


def _resolve_tolerance(tolerance: Optional[timedelta]) -> timedelta:
    return DEFAULT_TIMESTAMP_TOLERANCE if tolerance is None else tolerance


def _strip_prefix(signature: str) -> str:
    if signature[: len(SIGNATURE_PREFIX)].lower() == SIGNATURE_PREFIX:
        return signature[len(SIGNATURE_PREFIX) :]
    return signature


def verify_signature(
    payload: BytesOrStr,
    signature: str,
    timestamp: str,
    secret: BytesOrStr,
    tolerance: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """
    Verify a webhook signature and classify the outcome.

    Never raises: empty or malformed input is reported as MALFORMED_INPUT,
    an out-of-window timestamp as STALE_TIMESTAMP and a digest mismatch as
    INVALID_SIGNATURE.
    """
    if not payload or not signature or not timestamp or not secret:
        return VerificationResult(VerificationStatus.MALFORMED_INPUT)
    if not isinstance(signature, str) or not isinstance(timestamp, str):
        return VerificationResult(VerificationStatus.MALFORMED_INPUT)
    if not isinstance(payload, _SIGNABLE) or not isinstance(secret, _SIGNABLE):
        return VerificationResult(VerificationStatus.MALFORMED_INPUT)

    # Replay protection
    if parse_timestamp(timestamp) is None:
        return VerificationResult(VerificationStatus.MALFORMED_INPUT)
    if not validate_timestamp(timestamp, _resolve_tolerance(tolerance), now):
        return VerificationResult(VerificationStatus.STALE_TIMESTAMP)

    provided = _strip_prefix(signature)
    expected = compute_signature(payload, secret, timestamp)

    if constant_time_equals(provided, expected):
        return VerificationResult(VerificationStatus.VALID, SecretSlot.PRIMARY)
    return VerificationResult(VerificationStatus.INVALID_SIGNATURE)


def validate_signature(
    payload: BytesOrStr,
    signature: str,
    timestamp: str,
    secret: BytesOrStr,
    tolerance: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Validate a webhook signature.

    Args:
        payload: The raw request body
        signature: X-Webhook-Signature header value, ``sha256=`` prefix optional
        timestamp: X-Webhook-Timestamp header value
        secret: Webhook signing secret
        tolerance: Optional timestamp tolerance (default 5 minutes)
        now: Reference time for the timestamp check

    Returns:
        True if the signature is valid and the timestamp is fresh
    """
    return verify_signature(payload, signature, timestamp, secret, tolerance, now).is_valid


def verify_signature_with_fallback(
    payload: BytesOrStr,
    signature: str,
    timestamp: str,
    primary_secret: BytesOrStr,
    secondary_secret: Optional[BytesOrStr] = None,
    tolerance: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Verify against the primary secret, then the secondary one during rotation."""
    result = verify_signature(payload, signature, timestamp, primary_secret, tolerance, now)
    if result.is_valid or not secondary_secret:
        return result

    fallback = verify_signature(payload, signature, timestamp, secondary_secret, tolerance, now)
    if fallback.is_valid:
        return VerificationResult(VerificationStatus.VALID, SecretSlot.SECONDARY)
    return fallback


def validate_signature_with_fallback(
    payload: BytesOrStr,
    signature: str,
    timestamp: str,
    primary_secret: BytesOrStr,
    secondary_secret: Optional[BytesOrStr] = None,
    tolerance: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Validate a webhook signature, accepting either secret during key rotation.

    The primary secret is tried first. The secondary secret is only tried
    when the primary fails and a secondary is configured.
    """
    return verify_signature_with_fallback(
        payload, signature, timestamp, primary_secret, secondary_secret, tolerance, now
    ).is_valid


def is_valid_webhook(
    body: BytesOrStr, signature_header: str, timestamp_header: str, secret: BytesOrStr
) -> bool:
    """Validate a webhook from its raw body and header values."""
    return validate_signature(body, signature_header, timestamp_header, secret)


def build_signature_headers(
    payload: BytesOrStr, secret: BytesOrStr, timestamp: Optional[str] = None
) -> Dict[str, str]:
    """
    Build the headers a sender attaches to a delivery.

    Args:
        payload: Raw body that will be sent
        secret: Webhook signing secret
        timestamp: ISO-8601 timestamp (defaults to now, UTC)

    Returns:
        Headers dict with X-Webhook-Signature and X-Webhook-Timestamp
    """
    if timestamp is None:
        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    signature = compute_signature(payload, secret, timestamp)
    return {
        SIGNATURE_HEADER: f"{SIGNATURE_PREFIX}{signature}",
        TIMESTAMP_HEADER: timestamp,
    }
