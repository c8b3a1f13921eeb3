"""
Unit tests for webhook signatures and API key helpers.
"""

import hashlib
import hmac

from app.core.security import (
    api_key_matches,
    compute_webhook_signature,
    extract_api_key,
    verify_webhook_signature,
)

SECRET = "whsec_test"
BODY = b'{"event":"User.Created"}'


class TestWebhookSignature:

    def test_hex_hmac_sha256(self):
        expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()
        assert compute_webhook_signature(BODY, SECRET) == expected

    def test_verify(self):
        signature = compute_webhook_signature(BODY, SECRET)

        assert verify_webhook_signature(BODY, signature, SECRET)
        assert verify_webhook_signature(BODY, f" {signature.upper()} ", SECRET)

    def test_reject(self):
        signature = compute_webhook_signature(BODY, SECRET)

        assert not verify_webhook_signature(BODY + b" ", signature, SECRET)
        assert not verify_webhook_signature(BODY, signature, "other-secret")
        assert not verify_webhook_signature(BODY, None, SECRET)
        assert not verify_webhook_signature(BODY, "", SECRET)


class TestApiKey:

    def test_extract_prefers_x_api_key(self):
        assert extract_api_key("from-header", "Bearer from-bearer") == "from-header"

    def test_extract_bearer(self):
        assert extract_api_key(None, "Bearer from-bearer") == "from-bearer"
        assert extract_api_key(None, "raw-key") == "raw-key"

    def test_extract_nothing(self):
        assert extract_api_key(None, None) is None
        assert extract_api_key(None, "Bearer ") is None

    def test_matches(self):
        assert api_key_matches("ext-key", "ext-key")
        assert not api_key_matches("ext-key", "ext-kez")
        assert not api_key_matches("", "ext-key")
