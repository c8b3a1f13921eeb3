"""
Security utilities for webhook signatures and API keys.

Logto signs each webhook delivery with HMAC-SHA256 over the raw request body
using the hook's signing key, hex-encoded in the ``logto-signature-sha-256``
header.
"""

import hmac
import hashlib
from typing import Optional

WEBHOOK_SIGNATURE_HEADER = "logto-signature-sha-256"


def compute_webhook_signature(payload: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of the payload keyed with the webhook secret."""
    return hmac.new(
        secret.encode('utf-8'),
        payload,
        hashlib.sha256
    ).hexdigest()


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Verify a Logto webhook signature.

    Args:
        payload: Raw request body, exactly as received
        signature: Value of the logto-signature-sha-256 header
        secret: Webhook signing key

    Returns:
        bool: True only if the signature matches
    """
    if not signature:
        return False

    expected_signature = compute_webhook_signature(payload, secret)
    return hmac.compare_digest(signature.strip().lower(), expected_signature)


def extract_api_key(x_api_key: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Read the API key from X-API-Key, falling back to a Bearer Authorization header."""
    if x_api_key:
        return x_api_key
    if authorization:
        return authorization.replace("Bearer ", "", 1).strip() or None
    return None


def api_key_matches(provided: str, expected: str) -> bool:
    """Constant-time API key comparison."""
    return hmac.compare_digest(provided.encode('utf-8'), expected.encode('utf-8'))
