"""
Logto Account API client.

Calls the provider's end-user Account API with the signed-in user's bearer
token. Protected mutations carry a password-proof verification record id in
the ``logto-verification-id`` header.

Provider error responses are classified here, once, into the typed errors of
app.core.errors. Nothing downstream inspects provider codes or messages.
"""

import logging
import httpx
from pydantic import BaseModel, ValidationError
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from app.core.errors import (
    AccountError,
    CodeInvalid,
    InvalidCredentials,
    NetworkFailure,
    PasswordRejected,
    ProviderRejected,
    Unauthenticated,
    ValidationFailed,
    VerificationExpired,
)
from app.schemas.account import (
    BackupCodesResponse,
    MfaVerification,
    SocialConnector,
    SocialVerificationStart,
    TotpSecretResponse,
    UpdateExtendedProfileRequest,
    UpdateProfileRequest,
    UserProfile,
)
from app.schemas.verification import (
    IdentifierType,
    SendCodeResponse,
    VerificationIdentifier,
    VerificationResponse,
    VerifyCodeRequest,
)

logger = logging.getLogger(__name__)

VERIFICATION_HEADER = "logto-verification-id"

AccessTokenGetter = Callable[[], Awaitable[str]]
ModelT = TypeVar("ModelT", bound=BaseModel)

UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from the server. Please try again."


def classify_provider_error(status_code: int, body: Mapping[str, Any]) -> AccountError:
    """
    Map a provider error response to a typed error.

    Args:
        status_code: HTTP status of the response
        body: Decoded JSON body ({"code": ..., "message": ...}), or {} if none

    Returns:
        AccountError: The exception to raise
    """
    code = str(body.get("code") or "")
    provider_message = body.get("message") or body.get("error_description") or body.get("error")

    if code == "session.invalid_credentials" or "invalid_credentials" in code:
        return InvalidCredentials(status_code=status_code, code=code)

    # One-time code failures (including an expired code) are retried in place
    if code == "session.verification_failed" or code.startswith("verification_code.") \
            or "invalid_totp" in code or "code_mismatch" in code:
        return CodeInvalid(status_code=status_code, code=code)

    if code in ("session.verification_session_not_found", "verification_record.not_found") \
            or code.endswith(".expired") or code.endswith("verification_expired"):
        return VerificationExpired(status_code=status_code, code=code)

    if "password.rejected" in code:
        return PasswordRejected(provider_message, status_code=status_code, code=code)

    if status_code == 401:
        return Unauthenticated(status_code=status_code, code=code)

    if status_code == 403:
        return ProviderRejected(
            "You do not have permission to perform this action",
            status_code=status_code,
            code=code
        )

    if status_code == 422:
        return ProviderRejected(provider_message or "Invalid request data", status_code=status_code, code=code)

    return ProviderRejected(
        provider_message or f"Request failed ({status_code})",
        status_code=status_code,
        code=code
    )


def _require_record_id(verification_record_id: Optional[str], name: str = "verification record") -> str:
    if not verification_record_id:
        raise ValidationFailed(f"A {name} id is required for this action")
    return verification_record_id


def _json_body(response: httpx.Response) -> Any:
    """Decode a 2xx body; one that is not JSON is a provider fault."""
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"Non-JSON response from Account API: {response.status_code}")
        raise ProviderRejected(UNEXPECTED_RESPONSE_MESSAGE, status_code=response.status_code) from e


def _parse(model: Type[ModelT], data: Any) -> ModelT:
    """Validate a 2xx body against its schema; a malformed one is a provider fault."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Malformed {model.__name__} from Account API: {e.error_count()} validation errors")
        raise ProviderRejected(UNEXPECTED_RESPONSE_MESSAGE) from e


class AccountApiService:
    """
    Account API client for the signed-in user.

    The access token getter is supplied by whatever owns the user's session
    (the identity SDK in the browser, or a test fixture).
    """

    def __init__(
        self,
        endpoint: str,
        access_token_getter: Optional[AccessTokenGetter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.get_access_token = access_token_getter
        self.transport = transport

    def set_access_token_getter(self, getter: AccessTokenGetter) -> None:
        self.get_access_token = getter

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.endpoint, transport=self.transport, timeout=30.0)

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        verification_record_id: Optional[str] = None,
    ) -> Any:
        """
        Send an authenticated request.

        Returns:
            Decoded JSON body, or None for 204 / empty responses

        Raises:
            AccountError: Classified provider or transport failure
        """
        logger.debug(
            f"Account API request: {method} {path}",
            extra={"verification_record_id": verification_record_id}
        )

        if self.get_access_token is None:
            raise RuntimeError("Access token getter not configured")

        try:
            access_token = await self.get_access_token()
        except Exception as e:
            logger.warning(f"Failed to obtain access token: {e}")
            raise Unauthenticated("Failed to get an access token. Please sign in again.") from e

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
        }
        if verification_record_id:
            headers[VERIFICATION_HEADER] = verification_record_id

        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"Account API transport error on {method} {path}: {e}")
            raise NetworkFailure() from e

        logger.debug(f"Account API response: {method} {path} {response.status_code}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            error = classify_provider_error(response.status_code, body)
            logger.info(f"Account API {method} {path} rejected: {response.status_code} {error.kind.value}")
            raise error

        if response.status_code == 204 or not response.content:
            return None

        return _json_body(response)

    # Profile endpoints
    async def get_profile(self) -> UserProfile:
        return _parse(UserProfile, await self.request("GET", "/api/my-account"))

    async def update_profile(self, data: UpdateProfileRequest) -> UserProfile:
        body = data.model_dump(by_alias=True, exclude_none=True)
        return _parse(UserProfile, await self.request("PATCH", "/api/my-account", json=body))

    async def update_extended_profile(self, data: UpdateExtendedProfileRequest) -> Dict[str, Any]:
        # Returns the extended profile sub-object, not the full account
        body = data.model_dump(by_alias=True, exclude_none=True)
        return await self.request("PATCH", "/api/my-account/profile", json=body) or {}

    # Verification endpoints
    async def verify_password(self, password: str) -> VerificationResponse:
        result = await self.request("POST", "/api/verifications/password", json={"password": password})
        return _parse(VerificationResponse, result)

    async def send_verification_code(self, type: IdentifierType, value: str) -> SendCodeResponse:
        result = await self.request(
            "POST",
            "/api/verifications/verification-code",
            json={"identifier": {"type": type, "value": value}}
        )
        return _parse(SendCodeResponse, result)

    async def verify_code(
        self,
        type: IdentifierType,
        value: str,
        verification_id: str,
        code: str
    ) -> VerificationResponse:
        result = await self.request(
            "POST",
            "/api/verifications/verification-code/verify",
            json=VerifyCodeRequest(
                identifier=VerificationIdentifier(type=type, value=value),
                verification_id=verification_id,
                code=code,
            ).model_dump(by_alias=True)
        )
        return _parse(VerificationResponse, result)

    # Password endpoints
    async def update_password(self, password: str, verification_record_id: str) -> None:
        await self.request(
            "POST",
            "/api/my-account/password",
            json={"password": password},
            verification_record_id=_require_record_id(verification_record_id)
        )

    async def set_password(self, password: str) -> None:
        """Set a first password for accounts without one (e.g. social sign-up)."""
        await self.request("POST", "/api/my-account/password", json={"password": password})

    # Email endpoints
    async def update_primary_email(
        self,
        email: str,
        verification_record_id: str,
        new_identifier_verification_record_id: str
    ) -> Optional[UserProfile]:
        result = await self.request(
            "POST",
            "/api/my-account/primary-email",
            json={
                "email": email,
                "newIdentifierVerificationRecordId": _require_record_id(
                    new_identifier_verification_record_id, "new identifier verification record"
                ),
            },
            verification_record_id=_require_record_id(verification_record_id)
        )
        return _parse(UserProfile, result) if result else None

    async def delete_primary_email(self, verification_record_id: str) -> None:
        await self.request(
            "DELETE",
            "/api/my-account/primary-email",
            verification_record_id=_require_record_id(verification_record_id)
        )

    # Phone endpoints
    async def update_primary_phone(
        self,
        phone: str,
        verification_record_id: str,
        new_identifier_verification_record_id: str
    ) -> Optional[UserProfile]:
        result = await self.request(
            "PATCH",
            "/api/my-account/primary-phone",
            json={
                "phone": phone,
                "newIdentifierVerificationRecordId": _require_record_id(
                    new_identifier_verification_record_id, "new identifier verification record"
                ),
            },
            verification_record_id=_require_record_id(verification_record_id)
        )
        return _parse(UserProfile, result) if result else None

    async def delete_primary_phone(self, verification_record_id: str) -> None:
        await self.request(
            "DELETE",
            "/api/my-account/primary-phone",
            verification_record_id=_require_record_id(verification_record_id)
        )

    # MFA endpoints
    async def get_mfa_verifications(self) -> List[MfaVerification]:
        result = await self.request("GET", "/api/my-account/mfa-verifications")
        return [_parse(MfaVerification, item) for item in result or []]

    async def create_totp_secret(self, verification_record_id: str) -> TotpSecretResponse:
        result = await self.request(
            "POST",
            "/api/my-account/mfa-verifications",
            json={"type": "Totp"},
            verification_record_id=_require_record_id(verification_record_id)
        )
        return _parse(TotpSecretResponse, result)

    async def verify_and_bind_totp(self, code: str, verification_record_id: str) -> None:
        await self.request(
            "POST",
            "/api/my-account/mfa-verifications/totp/verify",
            json={"code": code},
            verification_record_id=_require_record_id(verification_record_id)
        )

    async def generate_backup_codes(self, verification_record_id: str) -> BackupCodesResponse:
        result = await self.request(
            "POST",
            "/api/my-account/mfa-verifications/generate-backup-codes",
            verification_record_id=_require_record_id(verification_record_id)
        )
        return _parse(BackupCodesResponse, result)

    async def delete_mfa_verification(self, verification_id: str, verification_record_id: str) -> None:
        await self.request(
            "DELETE",
            f"/api/my-account/mfa-verifications/{verification_id}",
            verification_record_id=_require_record_id(verification_record_id)
        )

    async def update_mfa_verification_name(
        self,
        verification_id: str,
        name: str,
        verification_record_id: str
    ) -> None:
        await self.request(
            "PATCH",
            f"/api/my-account/mfa-verifications/{verification_id}",
            json={"name": name},
            verification_record_id=_require_record_id(verification_record_id)
        )

    # Social identity endpoints
    async def start_social_verification(
        self,
        connector_id: str,
        redirect_uri: str,
        state: str,
        verification_record_id: str
    ) -> SocialVerificationStart:
        result = await self.request(
            "POST",
            "/api/verifications/social",
            json={
                "connectorId": connector_id,
                "redirectUri": redirect_uri,
                "state": state,
            },
            verification_record_id=_require_record_id(verification_record_id)
        )
        return _parse(SocialVerificationStart, result)

    async def verify_social_identity(
        self,
        connector_id: str,
        verification_id: str,
        callback_data: Mapping[str, str]
    ) -> VerificationResponse:
        result = await self.request(
            "POST",
            "/api/verifications/social/verify",
            json={
                "connectorId": connector_id,
                "verificationId": verification_id,
                "callbackData": dict(callback_data),
            }
        )
        return _parse(VerificationResponse, result)

    async def bind_social_identity(
        self,
        verification_record_id: str,
        new_identifier_verification_record_id: str
    ) -> None:
        await self.request(
            "POST",
            "/api/my-account/identities",
            json={
                "newIdentifierVerificationRecordId": _require_record_id(
                    new_identifier_verification_record_id, "new identifier verification record"
                ),
            },
            verification_record_id=_require_record_id(verification_record_id)
        )

    async def unlink_social_identity(self, target: str, verification_record_id: str) -> None:
        await self.request(
            "DELETE",
            f"/api/my-account/identities/{target}",
            verification_record_id=_require_record_id(verification_record_id)
        )

    async def get_social_connectors(self) -> List[SocialConnector]:
        """Social connectors enabled in the sign-in experience (no auth required)."""
        try:
            async with self._client() as client:
                response = await client.get("/api/.well-known/sign-in-exp")
        except httpx.TransportError as e:
            raise NetworkFailure() from e

        if response.status_code != 200:
            raise ProviderRejected("Failed to fetch social connectors", status_code=response.status_code)

        data = _json_body(response)
        if not isinstance(data, dict):
            raise ProviderRejected(UNEXPECTED_RESPONSE_MESSAGE, status_code=response.status_code)
        return [_parse(SocialConnector, item) for item in data.get("socialConnectors") or []]
