"""
Authentication service.

Checks username-or-email + password credentials against the Logto
Management API.
"""

import logging
import re
from typing import Optional

from app.schemas.user import LogtoUser, LoginResult
from app.services.logto_service import LogtoService, logto_service

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


class AuthService:
    def __init__(self, logto: Optional[LogtoService] = None):
        self.logto = logto or logto_service

    async def find_user_by_username(self, username: str) -> Optional[LogtoUser]:
        """Find user by username (exact match)"""
        users = await self.logto.get_users([
            ("search.username", username),
            ("mode.username", "exact"),
        ])
        return users[0] if users else None

    async def find_user_by_email(self, email: str) -> Optional[LogtoUser]:
        """Find user by primary email (exact match)"""
        users = await self.logto.get_users([
            ("search.primaryEmail", email),
            ("mode.primaryEmail", "exact"),
        ])
        return users[0] if users else None

    async def find_user(self, username_or_email: str) -> Optional[LogtoUser]:
        if EMAIL_PATTERN.match(username_or_email):
            return await self.find_user_by_email(username_or_email)
        return await self.find_user_by_username(username_or_email)

    async def verify_credentials(self, username_or_email: str, password: str) -> LoginResult:
        user = await self.find_user(username_or_email)

        if not user:
            logger.debug(f"User not found: {username_or_email}")
            return LoginResult(success=False, error="User not found")

        if user.is_suspended:
            logger.debug(f"User is suspended: {username_or_email}")
            return LoginResult(success=False, error="User is suspended")

        if not await self.logto.verify_user_password(user.id, password):
            logger.debug(f"Invalid password for user: {username_or_email}")
            return LoginResult(success=False, error="Invalid password")

        return LoginResult(success=True, user=user)

    async def login(self, username_or_email: str, password: str) -> LoginResult:
        """
        Log a user in.

        Returns:
            LoginResult: success flag plus the user on success or the reason on failure
        """
        logger.info(f"Login attempt for: {username_or_email}")

        result = await self.verify_credentials(username_or_email, password)

        if result.success:
            logger.info(f"Login successful for: {username_or_email} ({result.user.id})")
        else:
            logger.warning(f"Login failed for: {username_or_email} - {result.error}")

        return result


auth_service = AuthService()
