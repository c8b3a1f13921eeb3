"""
Typed error taxonomy for account-center flows.

Provider responses are classified once, at the Account API client boundary,
into one of these exceptions. Flow code branches on the exception type (or
its ``kind``), never on message text.
"""

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    CODE_INVALID = "code_invalid"
    VERIFICATION_EXPIRED = "verification_expired"
    CANCELLED = "cancelled"
    POSSIBLE_CSRF = "possible_csrf"
    NETWORK_FAILURE = "network_failure"
    PROVIDER_REJECTED = "provider_rejected"
    PASSWORD_REJECTED = "password_rejected"
    UNAUTHENTICATED = "unauthenticated"
    VALIDATION_FAILED = "validation_failed"
    FLOW_BUSY = "flow_busy"


class AccountError(Exception):
    """Base class for every error surfaced by the account-center core."""

    kind: ErrorKind = ErrorKind.PROVIDER_REJECTED
    default_message = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class InvalidCredentials(AccountError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Incorrect password"


class CodeInvalid(AccountError):
    kind = ErrorKind.CODE_INVALID
    default_message = "Invalid verification code"


class VerificationExpired(AccountError):
    kind = ErrorKind.VERIFICATION_EXPIRED
    default_message = "Verification has expired. Please verify your identity again."


class Cancelled(AccountError):
    kind = ErrorKind.CANCELLED
    default_message = "Cancelled"


class PossibleCSRF(AccountError):
    kind = ErrorKind.POSSIBLE_CSRF
    default_message = "State mismatch - possible CSRF attack"


class NetworkFailure(AccountError):
    kind = ErrorKind.NETWORK_FAILURE
    default_message = "Network error. Please check your connection and try again."


class ProviderRejected(AccountError):
    kind = ErrorKind.PROVIDER_REJECTED


class PasswordRejected(ProviderRejected):
    kind = ErrorKind.PASSWORD_REJECTED
    default_message = "The new password does not meet the security requirements"


class Unauthenticated(ProviderRejected):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication failed. Please sign in again."


class ValidationFailed(AccountError):
    """Client-side validation failure; never reaches the network layer."""

    kind = ErrorKind.VALIDATION_FAILED
    default_message = "Invalid input"


class FlowBusy(AccountError):
    kind = ErrorKind.FLOW_BUSY
    default_message = "Another request for this action is still in progress"
