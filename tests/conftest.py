"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- FastAPI test client
- An in-memory Logto Account API served through httpx.MockTransport
- A controllable clock and an AccountSession wired to both
"""

import asyncio
import json
import os
import uuid
from datetime import datetime, timedelta, timezone

# Required settings must exist before the app is imported
os.environ.setdefault("LOGTO_ENDPOINT", "https://logto.test")
os.environ.setdefault("LOGTO_M2M_APP_ID", "m2m-app")
os.environ.setdefault("LOGTO_M2M_APP_SECRET", "m2m-secret")
os.environ.setdefault("LOGTO_SPA_APP_ID", "spa-app")
os.environ.setdefault("APP_URL", "https://app.test")
os.environ.setdefault("JSON_LOGS", "false")

import httpx
import pyotp
import pytest
from fastapi.testclient import TestClient

from app.core.session import AccountSession
from app.services.account_api import VERIFICATION_HEADER, AccountApiService
from main import app

PASSWORD = "CorrectHorse1"
REDIRECT_URI = "https://app.test/user/callback/social"
RECORD_TTL = timedelta(minutes=10)


class FakeClock:
    """Mutable clock shared by the session and the fake provider."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeLogto:
    """
    In-memory Logto Account API.

    Every request is recorded in ``calls`` as (method, path, json, verification id).
    Password-proof records expire on the shared clock, one-time codes are
    always ``CODE`` and TOTP codes are checked with pyotp.
    """

    CODE = "123456"

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.password = PASSWORD
        self.calls = []
        self.records = {}
        self.codes = {}
        self.identifier_records = {}
        self.social_verifications = {}
        self.social_records = {}
        self.totp_secret = None
        self.mfa = []
        self.rejected_passwords = {"password1234"}
        self.connectors = [
            {"id": "github-conn", "target": "github", "platform": "Universal", "name": {"en": "GitHub"}, "logo": ""},
            {"id": "google-conn", "target": "google", "platform": "Web", "name": {"en": "Google"}, "logo": ""},
            {"id": "email-conn", "target": "email", "platform": None, "name": {"en": "Email"}, "logo": ""},
            {"id": "sms-conn", "target": "sms", "platform": None, "name": {"en": "SMS"}, "logo": ""},
        ]
        self.user = {
            "id": "user_1",
            "username": "alice",
            "primaryEmail": "alice@example.com",
            "primaryPhone": "15551234567",
            "name": "Alice",
            "avatar": None,
            "customData": {},
            "identities": {"google": {"userId": "g-123", "details": {}}},
            "profile": {"locale": "en-US"},
            "hasPassword": True,
        }

    # ============ helpers ============

    def _id(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:8]}"

    def _issue_record(self) -> dict:
        record_id = self._id("vr")
        expires_at = self.clock() + RECORD_TTL
        self.records[record_id] = expires_at
        return {"verificationRecordId": record_id, "expiresAt": expires_at.isoformat()}

    def _record_ok(self, request: httpx.Request) -> bool:
        record_id = request.headers.get(VERIFICATION_HEADER)
        expires_at = self.records.get(record_id)
        return expires_at is not None and self.clock() < expires_at

    @staticmethod
    def _error(status: int, code: str, message: str = "") -> httpx.Response:
        return httpx.Response(status, json={"code": code, "message": message or code})

    def calls_to(self, method: str, path: str) -> list:
        return [c for c in self.calls if c[0] == method and c[1] == path]

    # ============ transport ============

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = None
        if request.content:
            body = json.loads(request.content)
        path = request.url.path
        method = request.method
        self.calls.append((method, path, body, request.headers.get(VERIFICATION_HEADER)))

        if path == "/api/.well-known/sign-in-exp":
            return httpx.Response(200, json={"socialConnectors": self.connectors})

        if request.headers.get("Authorization") != "Bearer user-token":
            return self._error(401, "auth.unauthorized")

        route = (method, path)

        if route == ("GET", "/api/my-account"):
            return httpx.Response(200, json=self.user)
        if route == ("PATCH", "/api/my-account"):
            self.user.update(body)
            return httpx.Response(200, json=self.user)
        if route == ("PATCH", "/api/my-account/profile"):
            self.user["profile"].update(body)
            return httpx.Response(200, json=self.user["profile"])

        if route == ("POST", "/api/verifications/password"):
            if body.get("password") != self.password:
                return self._error(422, "session.invalid_credentials", "Invalid credentials")
            return httpx.Response(201, json=self._issue_record())

        if route == ("POST", "/api/verifications/verification-code"):
            verification_id = self._id("code")
            self.codes[verification_id] = (body["identifier"]["type"], body["identifier"]["value"])
            return httpx.Response(201, json={"verificationId": verification_id})

        if route == ("POST", "/api/verifications/verification-code/verify"):
            issued = self.codes.get(body["verificationId"])
            identifier = (body["identifier"]["type"], body["identifier"]["value"])
            if issued != identifier or body["code"] != self.CODE:
                return self._error(400, "verification_code.code_mismatch")
            result = self._issue_record()
            self.identifier_records[result["verificationRecordId"]] = identifier
            return httpx.Response(200, json=result)

        if route == ("POST", "/api/my-account/password"):
            if self.user["hasPassword"] and not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            if body["password"] in self.rejected_passwords:
                return self._error(422, "password.rejected", "Password is too common")
            self.password = body["password"]
            self.user["hasPassword"] = True
            return httpx.Response(204)

        if path in ("/api/my-account/primary-email", "/api/my-account/primary-phone"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            field, kind = ("primaryEmail", "email") if path.endswith("email") else ("primaryPhone", "phone")
            if method == "DELETE":
                self.user[field] = None
                return httpx.Response(204)
            value = body[kind]
            if self.identifier_records.get(body["newIdentifierVerificationRecordId"]) != (kind, value):
                return self._error(400, "verification_record.not_found")
            self.user[field] = value
            return httpx.Response(204)

        if route == ("GET", "/api/my-account/mfa-verifications"):
            return httpx.Response(200, json=self.mfa)
        if route == ("POST", "/api/my-account/mfa-verifications"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            self.totp_secret = pyotp.random_base32()
            return httpx.Response(200, json={"secret": self.totp_secret, "secretQrCode": "data:image/png;base64,AAAA"})
        if route == ("POST", "/api/my-account/mfa-verifications/totp/verify"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            if not self.totp_secret or not pyotp.TOTP(self.totp_secret).verify(body["code"], valid_window=1):
                return self._error(400, "session.mfa.invalid_totp_code")
            self.mfa.append({"id": self._id("mfa"), "type": "Totp", "createdAt": "2024-01-01T12:00:00.000Z"})
            return httpx.Response(204)
        if route == ("POST", "/api/my-account/mfa-verifications/generate-backup-codes"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            self.mfa = [m for m in self.mfa if m["type"] != "BackupCode"]
            self.mfa.append({"id": self._id("mfa"), "type": "BackupCode", "createdAt": "2024-01-01T12:00:00.000Z"})
            return httpx.Response(200, json={"codes": [f"code{i:04d}" for i in range(10)]})
        if path.startswith("/api/my-account/mfa-verifications/"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            factor_id = path.rsplit("/", 1)[1]
            if method == "DELETE":
                self.mfa = [m for m in self.mfa if m["id"] != factor_id]
                return httpx.Response(204)
            for factor in self.mfa:
                if factor["id"] == factor_id:
                    factor["name"] = body["name"]
            return httpx.Response(204)

        if route == ("POST", "/api/verifications/social"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            verification_id = self._id("social")
            self.social_verifications[verification_id] = body["connectorId"]
            return httpx.Response(200, json={
                "verificationId": verification_id,
                "authorizationUri": f"https://provider.test/authorize?state={body['state']}",
                "expiresAt": (self.clock() + RECORD_TTL).isoformat(),
            })
        if route == ("POST", "/api/verifications/social/verify"):
            connector_id = self.social_verifications.get(body["verificationId"])
            if connector_id != body["connectorId"] or not body["callbackData"].get("code"):
                return self._error(400, "verification_record.not_found")
            result = self._issue_record()
            self.social_records[result["verificationRecordId"]] = connector_id
            return httpx.Response(200, json=result)
        if route == ("POST", "/api/my-account/identities"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            connector_id = self.social_records.get(body["newIdentifierVerificationRecordId"])
            target = next(c["target"] for c in self.connectors if c["id"] == connector_id)
            self.user["identities"][target] = {"userId": "ext-1", "details": {}}
            return httpx.Response(204)
        if method == "DELETE" and path.startswith("/api/my-account/identities/"):
            if not self._record_ok(request):
                return self._error(401, "verification_record.not_found")
            self.user["identities"].pop(path.rsplit("/", 1)[1], None)
            return httpx.Response(204)

        return self._error(404, "entity.not_found")


@pytest.fixture
def client():
    """
    FastAPI test client.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_logto(clock):
    return FakeLogto(clock)


@pytest.fixture
def account_api(fake_logto):
    async def get_token():
        return "user-token"

    return AccountApiService(
        "https://tenant.logto.test",
        access_token_getter=get_token,
        transport=httpx.MockTransport(fake_logto.handler),
    )


@pytest.fixture
def session(account_api, clock):
    return AccountSession(account_api, clock=clock, social_redirect_uri=REDIRECT_URI)


async def answer_prompt(session, coro, password: str = PASSWORD) -> asyncio.Future:
    """Start a flow coroutine, answer the password prompt it opens and return its task."""
    task = asyncio.ensure_future(coro)
    for _ in range(100):
        if session.gate.has_pending or task.done():
            break
        await asyncio.sleep(0)
    if session.gate.has_pending:
        await session.gate.submit_password(password)
    return task


@pytest.fixture
def with_password(session):
    """
    Run a flow coroutine and answer the password prompt it opens.

    Usage: result = await with_password(flow.start_edit())
    """
    async def run(coro, password: str = PASSWORD):
        return await (await answer_prompt(session, coro, password))

    return run


@pytest.fixture
def in_background(session):
    """
    Start a flow coroutine, answer its password prompt and return the task
    without waiting for it.
    """
    async def run(coro):
        return await answer_prompt(session, coro)

    return run


class HeldResponse:
    """Holds Account API responses for one route until released."""

    def __init__(self, fake: FakeLogto, method: str, path: str):
        self.fake = fake
        self.route = (method, path)
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if (request.method, request.url.path) == self.route:
            self.reached.set()
            await self.release.wait()
        return self.fake.handler(request)


@pytest.fixture
def hold(session, fake_logto):
    """
    Usage: held = hold("POST", "/api/verifications/verification-code")
    """
    def install(method: str, path: str) -> HeldResponse:
        held = HeldResponse(fake_logto, method, path)
        session.account_api.transport = httpx.MockTransport(held.handler)
        return held

    return install


@pytest.fixture
def dismiss_prompt(session):
    """Run a flow coroutine and close the password prompt it opens."""
    async def run(coro):
        task = asyncio.ensure_future(coro)
        for _ in range(100):
            if session.gate.has_pending or task.done():
                break
            await asyncio.sleep(0)
        session.gate.cancel()
        return await task

    return run


def confirm_with(answer: bool):
    async def confirm(message: str) -> bool:
        return answer

    return confirm


@pytest.fixture
def confirm_yes():
    return confirm_with(True)


@pytest.fixture
def confirm_no():
    return confirm_with(False)


class FakeManagement:
    """In-memory Logto Management API (users and M2M token endpoint)."""

    def __init__(self):
        self.token_requests = 0
        self.calls = []
        self.passwords = {"u1": PASSWORD, "u2": PASSWORD}
        self.users = [
            {"id": "u1", "username": "alice", "primaryEmail": "alice@example.com", "isSuspended": False},
            {"id": "u2", "username": "bob", "primaryEmail": "bob@example.com", "isSuspended": True},
        ]

    def _user(self, user_id):
        return next((u for u in self.users if u["id"] == user_id), None)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path, dict(request.url.params)))

        if path == "/oidc/token":
            self.token_requests += 1
            if request.headers.get("Authorization", "").startswith("Basic "):
                return httpx.Response(200, json={"access_token": "m2m-token", "expires_in": 3600})
            return httpx.Response(401, json={"error": "invalid_client"})

        if request.headers.get("Authorization") != "Bearer m2m-token":
            return httpx.Response(401, json={"code": "auth.unauthorized"})

        if request.method == "GET" and path == "/api/users":
            params = request.url.params
            if "search.username" in params:
                found = [u for u in self.users if u["username"] == params["search.username"]]
            else:
                found = [u for u in self.users if u["primaryEmail"] == params.get("search.primaryEmail")]
            return httpx.Response(200, json=found)

        parts = path.split("/")
        user = self._user(parts[3]) if len(parts) > 3 else None
        if user is None:
            return httpx.Response(404, json={"code": "entity.not_exists"})

        if request.method == "POST" and path.endswith("/password/verify"):
            body = json.loads(request.content)
            return httpx.Response(204 if body["password"] == self.passwords[user["id"]] else 422)
        if request.method == "PATCH" and path.endswith("/is-suspended"):
            user["isSuspended"] = json.loads(request.content)["isSuspended"]
            return httpx.Response(200, json=user)
        if request.method == "PATCH" and path.endswith("/password"):
            self.passwords[user["id"]] = json.loads(request.content)["password"]
            return httpx.Response(204)
        if request.method == "PATCH":
            user.update(json.loads(request.content))
            return httpx.Response(200, json=user)
        if request.method == "DELETE":
            self.users.remove(user)
            return httpx.Response(204)
        if request.method == "GET":
            return httpx.Response(200, json=user)
        return httpx.Response(405)


@pytest.fixture
def management():
    return FakeManagement()


@pytest.fixture
def logto(management):
    from app.services.logto_service import LogtoService

    return LogtoService(
        endpoint="https://logto.test",
        app_id="m2m-app",
        app_secret="m2m-secret",
        resource="https://default.logto.app/api",
        transport=httpx.MockTransport(lambda request: management.handler(request)),
    )
