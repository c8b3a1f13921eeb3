"""
Core identity-verification logic.

A verification record is the provider's short-lived proof that the user
entered their current password. It is issued by the broker, handed to exactly
the flow that asked for it, and never used at or after its expiry.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

from app.core.errors import ValidationFailed, VerificationExpired

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

CODE_LENGTH = 6
CODE_PATTERN = re.compile(r'^\d{6}$')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class VerificationRecord:
    """
    Proof that the user supplied the correct password recently.

    Attributes:
        id: Opaque record id issued by the provider
        expires_at: Absolute UTC instant at which the record stops being usable
    """

    def __init__(self, id: str, expires_at: datetime):
        self.id = id
        self.expires_at = _as_utc(expires_at)

    def is_expired(self, now: datetime) -> bool:
        """Expired at or after expires_at."""
        return _as_utc(now) >= self.expires_at

    def remaining_seconds(self, now: datetime) -> int:
        remaining = (self.expires_at - _as_utc(now)).total_seconds()
        return max(0, int(remaining))

    def __repr__(self) -> str:
        return f"VerificationRecord(expires_at={self.expires_at.isoformat()})"


def require_valid_record(record: Optional[VerificationRecord], now: datetime) -> VerificationRecord:
    """
    Authoritative expiry check, made immediately before a protected call.

    Raises:
        VerificationExpired: If there is no record or it has expired
    """
    if record is None or record.is_expired(now):
        raise VerificationExpired()
    return record


def validate_code_format(code: str) -> str:
    """
    Ensure a one-time or TOTP code is exactly 6 digits.

    Raises:
        ValidationFailed: If the code is malformed
    """
    code = (code or "").strip()
    if not CODE_PATTERN.match(code):
        raise ValidationFailed(f"Code must be exactly {CODE_LENGTH} digits")
    return code


class VerificationBroker:
    """
    Wraps the provider's password-verification endpoint.

    Does not cache records and never retries: a rejected password has to be
    re-entered by the user.
    """

    def __init__(self, account_api, clock: Clock = utc_now):
        self.account_api = account_api
        self.clock = clock

    async def verify_password(self, password: str) -> VerificationRecord:
        """
        Exchange the current password for a verification record.

        Raises:
            ValidationFailed: Empty password (no request is made)
            InvalidCredentials: Provider rejected the password
            NetworkFailure: Transport error
        """
        if not password:
            raise ValidationFailed("Please enter your password")

        response = await self.account_api.verify_password(password)
        record = VerificationRecord(response.verification_record_id, response.expires_at)
        logger.debug(f"Verification record issued, {record.remaining_seconds(self.clock())}s remaining")
        return record
