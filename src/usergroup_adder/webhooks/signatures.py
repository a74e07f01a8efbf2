"""
Slack request signature verification.

Slack signs every Events API request with HMAC-SHA256:
- Base string: v0:{timestamp}:{body}
- Signature header (X-Slack-Signature): v0={hex_digest}
- Timestamp header (X-Slack-Request-Timestamp): unix seconds

Comparison is constant-time to prevent timing attacks. A missing signing
secret rejects every request.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from typing import Optional, Union

DEFAULT_MAX_AGE_SECONDS = 300


class SignatureVerificationError(Exception):
    """Raised when webhook signature verification fails."""

    def __init__(self, reason: str, service: str = "slack"):
        self.reason = reason
        self.service = service
        super().__init__(f"{service} signature verification failed: {reason}")


def _constant_time_compare(a: str, b: str) -> bool:
    """Constant-time string comparison to prevent timing attacks."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _as_bytes(raw_body: Union[bytes, str]) -> bytes:
    if isinstance(raw_body, bytes):
        return raw_body
    return raw_body.encode("utf-8")


def compute_slack_signature(
    signing_secret: str, timestamp: str, raw_body: Union[bytes, str]
) -> str:
    """Return the ``v0=`` signature Slack would send for this body."""
    base = b"v0:" + timestamp.encode("utf-8") + b":" + _as_bytes(raw_body)
    digest = hmac.new(
        signing_secret.encode("utf-8"),
        base,
        hashlib.sha256,
    ).hexdigest()
    return f"v0={digest}"


def verify_slack_signature(
    *,
    signing_secret: str,
    timestamp: Optional[str],
    signature: Optional[str],
    raw_body: Union[bytes, str],
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: Optional[float] = None,
) -> None:
    """
    Verify Slack request signature.

    The replay window is inclusive: a request exactly ``max_age_seconds``
    old is accepted.

    Args:
        signing_secret: Slack app signing secret
        timestamp: X-Slack-Request-Timestamp header
        signature: X-Slack-Signature header
        raw_body: Raw request body, exactly as received
        max_age_seconds: Maximum age of request (default 5 minutes)
        now: Current unix time, defaults to ``time.time()``

    Raises:
        SignatureVerificationError: If verification fails
    """
    if not signing_secret:
        raise SignatureVerificationError("missing_signing_secret")
    if not timestamp:
        raise SignatureVerificationError("missing_timestamp_header")
    if not signature:
        raise SignatureVerificationError("missing_signature_header")

    try:
        ts = int(timestamp)
    except (ValueError, TypeError):
        raise SignatureVerificationError("invalid_timestamp")

    current = time.time() if now is None else now
    age = abs(int(current) - ts)
    if age > max_age_seconds:
        raise SignatureVerificationError(
            f"stale_timestamp (age={age}s, max={max_age_seconds}s)"
        )

    expected = compute_slack_signature(signing_secret, timestamp, raw_body)
    if not _constant_time_compare(expected, signature):
        raise SignatureVerificationError("bad_signature")


def is_valid_slack_request(
    *,
    signing_secret: str,
    timestamp: Optional[str],
    signature: Optional[str],
    raw_body: Union[bytes, str],
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """Boolean form of :func:`verify_slack_signature`."""
    try:
        verify_slack_signature(
            signing_secret=signing_secret,
            timestamp=timestamp,
            signature=signature,
            raw_body=raw_body,
            max_age_seconds=max_age_seconds,
            now=now,
        )
    except SignatureVerificationError:
        return False
    return True
