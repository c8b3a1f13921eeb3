"""
Unit tests for the Logto webhook receiver.

Tests:
- HMAC signature verification over the raw body
- Payload validation
- Event dispatch
"""

import json

import pytest

from app.api.endpoints import webhook
from app.core.config import settings
from app.core.security import WEBHOOK_SIGNATURE_HEADER, compute_webhook_signature

WEBHOOK_URL = "/ext/webhook"
SECRET = "whsec_test"


def event_body(event="User.Created", **extra) -> bytes:
    payload = {
        "hookId": "hook_1",
        "event": event,
        "createdAt": "2024-01-01T12:00:00.000Z",
        "user": {"id": "u1", "username": "alice"},
        **extra,
    }
    return json.dumps(payload).encode()


def post(client, body: bytes, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers[WEBHOOK_SIGNATURE_HEADER] = signature
    return client.post(WEBHOOK_URL, content=body, headers=headers)


@pytest.fixture(autouse=True)
def webhook_settings(monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", None)
    monkeypatch.setattr(settings, "LOGTO_WEBHOOK_SECRET", SECRET)


class TestWebhookSignature:
    """Test signature checks"""

    def test_valid_signature(self, client):
        body = event_body()
        response = post(client, body, compute_webhook_signature(body, SECRET))

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_missing_signature(self, client):
        response = post(client, event_body())

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid signature"}

    def test_signature_over_different_body(self, client):
        signature = compute_webhook_signature(event_body("User.Deleted"), SECRET)
        response = post(client, event_body(), signature)
        assert response.status_code == 401

    def test_no_secret_configured(self, client, monkeypatch):
        """Signature checks are skipped when no signing key is set"""
        monkeypatch.setattr(settings, "LOGTO_WEBHOOK_SECRET", None)

        response = post(client, event_body())
        assert response.status_code == 200


class TestWebhookDispatch:
    """Test payload handling and dispatch"""

    @pytest.fixture
    def signed(self, client):
        def send(body: bytes):
            return post(client, body, compute_webhook_signature(body, SECRET))
        return send

    def test_invalid_json(self, signed):
        response = signed(b"{not json")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid payload"}

    def test_missing_required_fields(self, signed):
        response = signed(json.dumps({"event": "User.Created"}).encode())
        assert response.status_code == 400

    def test_unknown_event_acknowledged(self, signed):
        response = signed(event_body("Organization.Created"))

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_event_reaches_handler(self, signed, monkeypatch):
        seen = []

        async def record(event):
            seen.append((event.event, event.user["id"]))

        monkeypatch.setitem(webhook.EVENT_HANDLERS, "PostSignIn", record)
        response = signed(event_body("PostSignIn", sessionId="sess_1"))

        assert response.status_code == 200
        assert seen == [("PostSignIn", "u1")]

    def test_handler_failure(self, signed, monkeypatch):
        async def broken(event):
            raise RuntimeError("handler failed")

        monkeypatch.setitem(webhook.EVENT_HANDLERS, "User.Deleted", broken)
        response = signed(event_body("User.Deleted"))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_api_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "API_KEY", "ext-key")
        body = event_body()

        response = post(client, body, compute_webhook_signature(body, SECRET))
        assert response.status_code == 401
