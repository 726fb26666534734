"""
Webhook Guards
==============

FastAPI dependencies protecting the webhook endpoints:
- Per-client rate limiting
- Zendesk HMAC signature verification
"""

import base64
import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request

from deskpilot.config import settings
from deskpilot.core import AuthenticationException, RateLimitExceededException
from deskpilot.shared.infrastructure.logging import get_logger
from deskpilot.shared.infrastructure.rate_limit import ExpiringCounter

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Zendesk-Webhook-Signature"
TIMESTAMP_HEADER = "X-Zendesk-Webhook-Signature-Timestamp"


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of ``<timestamp>.<body>``."""
    digest = hmac.new(
        secret.encode("utf-8"),
        timestamp.encode("utf-8") + b"." + body,
        hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def parse_timestamp(timestamp: str) -> float:
    """
    Read a webhook timestamp as epoch seconds.

    Zendesk sends ISO-8601 (``2021-06-07T15:41:28Z``); integer epoch seconds
    are accepted as well. Naive ISO values are taken as UTC.

    Raises:
        AuthenticationException: If the value is neither format
    """
    value = timestamp.strip()
    try:
        return float(int(value))
    except ValueError:
        pass

    try:
        signed_at = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise AuthenticationException("Invalid webhook timestamp")

    if signed_at.tzinfo is None:
        signed_at = signed_at.replace(tzinfo=timezone.utc)
    return signed_at.timestamp()


def verify_signature(
    secret: str,
    signature: str,
    timestamp: str,
    body: bytes,
    max_age_seconds: int,
    now: Optional[float] = None
) -> None:
    """
    Check a webhook signature and the freshness of its timestamp.

    Raises:
        AuthenticationException: If the timestamp is invalid or stale, or the
            signature does not match
    """
    signed_at = parse_timestamp(timestamp)
    current = time.time() if now is None else now
    if abs(current - signed_at) > max_age_seconds:
        raise AuthenticationException("Webhook timestamp expired")

    expected = compute_signature(secret, timestamp, body)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        raise AuthenticationException("Invalid signature")


async def verify_webhook_signature(request: Request) -> None:
    """Dependency: reject webhooks not signed with the configured secret."""
    secret = settings.zendesk_webhook_secret
    if not secret:
        logger.warning("Webhook signature validation disabled (no secret configured)")
        return

    signature = request.headers.get(SIGNATURE_HEADER)
    timestamp = request.headers.get(TIMESTAMP_HEADER)
    if not signature or not timestamp:
        raise AuthenticationException(
            "Missing signature headers",
            {"required": [SIGNATURE_HEADER, TIMESTAMP_HEADER]}
        )

    body = await request.body()
    verify_signature(secret, signature, timestamp, body, settings.webhook_max_age_seconds)


async def enforce_rate_limit(request: Request) -> None:
    """Dependency: count the request against the caller's window."""
    limiter: Optional[ExpiringCounter] = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return

    client = request.client.host if request.client else "unknown"
    decision = limiter.hit(client)
    if not decision.allowed:
        logger.warning(
            "Rate limit exceeded",
            extra={"client": client, "retry_after": decision.retry_after_seconds}
        )
        raise RateLimitExceededException(decision.retry_after_seconds)
