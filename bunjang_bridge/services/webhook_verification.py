"""Shopify webhook HMAC verification.

Shopify signs the exact request bytes with the app's shared secret
(HMAC-SHA256, base64 in ``X-Shopify-Hmac-Sha256``). The raw body must be
verified before it is parsed, because re-serialized JSON does not reproduce
the signed bytes.
"""

import base64
import binascii
import hashlib
import hmac
import logging
from typing import Optional

from bunjang_bridge.core.exceptions import ServerMisconfigurationError, WebhookUnauthorizedError

logger = logging.getLogger(__name__)


def compute_shopify_hmac(raw_body: bytes, secret: str) -> str:
    """Base64-encoded HMAC-SHA256 of the raw body."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_shopify_webhook(
    raw_body: Optional[bytes],
    hmac_header: Optional[str],
    secret: Optional[str],
) -> None:
    """Raise unless ``hmac_header`` is a valid signature of ``raw_body``.

    Raises:
        WebhookUnauthorizedError: header missing, body unavailable, or signature mismatch
        ServerMisconfigurationError: no shared secret configured
    """
    if not hmac_header:
        raise WebhookUnauthorizedError("Missing HMAC header")
    if raw_body is None:
        raise WebhookUnauthorizedError("Missing raw body")
    if not secret:
        logger.error("SHOPIFY_WEBHOOK_SECRET is not configured; rejecting webhook")
        raise ServerMisconfigurationError("Webhook secret is not configured")

    computed = base64.b64decode(compute_shopify_hmac(raw_body, secret))
    try:
        provided = base64.b64decode(hmac_header, validate=True)
    except (binascii.Error, ValueError):
        raise WebhookUnauthorizedError("Invalid HMAC")

    if len(provided) != len(computed):
        raise WebhookUnauthorizedError("Invalid HMAC")
    if not hmac.compare_digest(provided, computed):
        raise WebhookUnauthorizedError("Invalid HMAC")
