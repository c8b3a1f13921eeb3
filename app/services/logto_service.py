"""
Logto Management API client.

Authenticates with machine-to-machine client credentials and provides
low-level access to the Management API user endpoints.
"""

import logging
import time
import httpx
from typing import Any, Dict, List, Optional, Sequence, Tuple
from app.core.config import settings
from app.schemas.user import LogtoUser, UpdateUserData

logger = logging.getLogger(__name__)

# Refresh the cached token this many seconds before it expires
TOKEN_REFRESH_MARGIN_SECONDS = 60


class LogtoAPIError(Exception):
    """Exception raised for non-2xx Management API responses."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class LogtoService:
    """
    Management API client.

    Handles:
    - client_credentials token acquisition and caching
    - authenticated GET/POST/PATCH/DELETE
    - user lookup, update, password verification and suspension
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        app_id: Optional[str] = None,
        app_secret: Optional[str] = None,
        resource: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = (endpoint if endpoint is not None else settings.LOGTO_ENDPOINT).rstrip("/")
        self.app_id = app_id if app_id is not None else settings.LOGTO_M2M_APP_ID
        self.app_secret = app_secret if app_secret is not None else settings.LOGTO_M2M_APP_SECRET
        self.resource = resource or settings.LOGTO_MANAGEMENT_RESOURCE
        self.transport = transport
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.endpoint, transport=self.transport, timeout=30.0)

    async def get_access_token(self) -> str:
        """
        Get a Management API access token, reusing the cached one until
        shortly before it expires.

        Raises:
            LogtoAPIError: If the token endpoint rejects the credentials
        """
        if self._access_token and time.time() < self._token_expiry - TOKEN_REFRESH_MARGIN_SECONDS:
            return self._access_token

        logger.debug("Fetching new access token from Logto")

        async with self._client() as client:
            response = await client.post(
                "/oidc/token",
                data={
                    "grant_type": "client_credentials",
                    "resource": self.resource,
                    "scope": "all"
                },
                auth=(self.app_id, self.app_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        if response.status_code != 200:
            logger.error(f"Failed to get access token: {response.status_code} {response.text}")
            raise LogtoAPIError(
                f"Failed to get access token: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text
            )

        data = response.json()
        self._access_token = data["access_token"]
        self._token_expiry = time.time() + int(data.get("expires_in", 0))

        logger.debug("Access token refreshed successfully")
        return self._access_token

    async def raw(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Make an authenticated request and return the response unchecked."""
        token = await self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            **kwargs.pop("headers", {})
        }
        async with self._client() as client:
            return await client.request(method, path, headers=headers, **kwargs)

    async def _checked(self, method: str, path: str, **kwargs) -> Any:
        response = await self.raw(method, path, **kwargs)
        if response.status_code >= 400:
            raise LogtoAPIError(
                f"API {method} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[Sequence[Tuple[str, str]]] = None) -> Any:
        return await self._checked("GET", path, params=params)

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return await self._checked("POST", path, json=body)

    async def patch(self, path: str, body: Dict[str, Any]) -> Any:
        return await self._checked("PATCH", path, json=body)

    async def delete(self, path: str) -> None:
        await self._checked("DELETE", path)

    # ============ User APIs ============

    async def get_user(self, user_id: str) -> Optional[LogtoUser]:
        try:
            return LogtoUser.model_validate(await self.get(f"/api/users/{user_id}"))
        except LogtoAPIError as e:
            logger.warning(f"Failed to fetch user {user_id}: {e}")
            return None

    async def get_users(self, params: Optional[Sequence[Tuple[str, str]]] = None) -> List[LogtoUser]:
        users = await self.get("/api/users", params=params)
        return [LogtoUser.model_validate(user) for user in users or []]

    async def update_user(self, user_id: str, data: UpdateUserData) -> LogtoUser:
        body = data.model_dump(by_alias=True, exclude_none=True)
        return LogtoUser.model_validate(await self.patch(f"/api/users/{user_id}", body))

    async def delete_user(self, user_id: str) -> None:
        await self.delete(f"/api/users/{user_id}")

    async def update_user_password(self, user_id: str, password: str) -> None:
        await self.patch(f"/api/users/{user_id}/password", {"password": password})

    async def verify_user_password(self, user_id: str, password: str) -> bool:
        """
        Check a user's password.

        Returns:
            bool: True on 204, False on 422

        Raises:
            LogtoAPIError: For any other status
        """
        response = await self.raw(
            "POST",
            f"/api/users/{user_id}/password/verify",
            json={"password": password}
        )

        if response.status_code == 204:
            return True
        if response.status_code == 422:
            return False

        raise LogtoAPIError(
            f"Password verification failed: {response.status_code} {response.text}",
            status_code=response.status_code,
            body=response.text
        )

    async def suspend_user(self, user_id: str) -> LogtoUser:
        return LogtoUser.model_validate(
            await self.patch(f"/api/users/{user_id}/is-suspended", {"isSuspended": True})
        )

    async def unsuspend_user(self, user_id: str) -> LogtoUser:
        return LogtoUser.model_validate(
            await self.patch(f"/api/users/{user_id}/is-suspended", {"isSuspended": False})
        )


# Singleton instance
logto_service = LogtoService()
