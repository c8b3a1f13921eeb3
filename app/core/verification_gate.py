"""
Process-wide password challenge.

Every part of the account center that needs a fresh verification record asks
the gate. The gate owns a single prompt (the "modal"); at most one request is
outstanding at a time and a newer request supersedes an older one.
"""

import asyncio
import enum
import logging
from typing import Callable, List, Optional

from app.core.errors import AccountError, Cancelled
from app.core.verification import VerificationBroker, VerificationRecord

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Verify your identity"
DEFAULT_DESCRIPTION = "Please enter your password to continue"
UNEXPECTED_ERROR_MESSAGE = "Something went wrong. Please try again."


class GateState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_PASSWORD = "awaiting_password"
    VERIFYING = "verifying"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class VerificationGate:
    """
    Single-flight password challenge.

    request() opens the prompt and returns a future that resolves with a
    VerificationRecord once submit_password() succeeds. Wrong passwords keep
    the prompt open with an error message. cancel() or a newer request()
    rejects the pending future with Cancelled.
    """

    def __init__(self, broker: VerificationBroker):
        self.broker = broker
        self.state = GateState.IDLE
        self.title = ""
        self.description = ""
        self.error: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None
        self._listeners: List[Callable[["VerificationGate"], None]] = []

    @property
    def is_open(self) -> bool:
        return self.state in (GateState.AWAITING_PASSWORD, GateState.VERIFYING)

    @property
    def is_loading(self) -> bool:
        return self.state == GateState.VERIFYING

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def subscribe(self, listener: Callable[["VerificationGate"], None]) -> Callable[[], None]:
        """Register a state-change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _reject_pending(self, reason: str) -> None:
        if self.has_pending:
            self._pending.set_exception(Cancelled(reason))
        self._pending = None

    def request(self, description: Optional[str] = None, title: Optional[str] = None) -> "asyncio.Future[VerificationRecord]":
        """
        Open the prompt and return a future for a fresh verification record.

        A request that is still pending is rejected with Cancelled first.
        """
        if self.has_pending:
            logger.debug("Superseding pending verification request")
        self._reject_pending("Superseded by a newer verification request")

        future = asyncio.get_running_loop().create_future()
        self._pending = future
        self.state = GateState.AWAITING_PASSWORD
        self.title = title or DEFAULT_TITLE
        self.description = description or DEFAULT_DESCRIPTION
        self.error = None
        self._notify()
        return future

    async def submit_password(self, password: str) -> bool:
        """
        Called by the prompt with the password the user typed.

        Returns:
            bool: True if the pending request was resolved, False if the prompt
            stays open (wrong password, validation or network error) or the
            request was superseded while verifying
        """
        if not self.has_pending:
            logger.debug("Password submitted with no pending verification request")
            return False

        future = self._pending
        self.state = GateState.VERIFYING
        self.error = None
        self._notify()

        try:
            record = await self.broker.verify_password(password)
        except AccountError as e:
            if future is self._pending:
                self.state = GateState.AWAITING_PASSWORD
                self.error = e.message
                self._notify()
            return False
        except Exception:
            # The prompt stays usable; the failure still reaches the caller
            logger.exception("Unexpected error while verifying password")
            if future is self._pending:
                self.state = GateState.AWAITING_PASSWORD
                self.error = UNEXPECTED_ERROR_MESSAGE
                self._notify()
            raise

        if future is not self._pending or future.done():
            # Cancelled or superseded while the password was being checked
            return False

        self._pending = None
        self.state = GateState.RESOLVED
        self.error = None
        future.set_result(record)
        self._notify()
        return True

    def cancel(self) -> None:
        """Dismiss the prompt (close button, escape key or backdrop click)."""
        self._reject_pending("Verification cancelled")
        self.state = GateState.CANCELLED
        self.error = None
        self._notify()
