"""
Shared plumbing for account-center flows.

A flow is one open piece of UI (a form, a setup card) driving a multi-request
protocol. Its transient state lives on the instance and is discarded on
cancel, completion or expiry.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from app.core.countdown import Countdown
from app.core.errors import AccountError, Cancelled, ErrorKind, FlowBusy, VerificationExpired
from app.core.verification import VerificationRecord, require_valid_record

logger = logging.getLogger(__name__)

# Destructive-action confirmation ("Are you sure?" modal)
Confirm = Callable[[str], Awaitable[bool]]


class Flow:
    def __init__(self, session):
        self.session = session
        self.api = session.account_api
        self.error: Optional[str] = None
        self.error_kind: Optional[ErrorKind] = None
        self.success: Optional[str] = None
        self.busy = False
        self.record: Optional[VerificationRecord] = None
        self.countdown: Optional[Countdown] = None
        self._gate_future: Optional[asyncio.Future] = None
        # Bumped by cancel(); requests started under an older value are dropped
        self._generation = 0

    def now(self):
        return self.session.clock()

    @property
    def remaining_seconds(self) -> int:
        return self.countdown.remaining_seconds if self.countdown else 0

    def tick(self) -> int:
        """Advance the countdown; the flow resets itself when it reaches zero."""
        return self.countdown.tick() if self.countdown else 0

    @asynccontextmanager
    async def _in_flight(self):
        """
        Run one request for this flow.

        If the flow is cancelled while the request is outstanding, whatever the
        body did with the result is discarded and Cancelled is raised instead.
        """
        if self.busy:
            raise FlowBusy()
        generation = self._generation
        self.busy = True
        try:
            yield
        except Exception as e:
            if generation != self._generation:
                raise self._drop_stale_result() from e
            raise
        finally:
            if generation == self._generation:
                self.busy = False
        if generation != self._generation:
            raise self._drop_stale_result()

    def _drop_stale_result(self) -> Cancelled:
        logger.debug(f"{type(self).__name__}: dropping result of a cancelled request")
        self._discard()
        # The provider may have applied the change before the cancel
        self.session.profile.invalidate()
        return Cancelled("Cancelled while a request was in flight")

    def _clear_messages(self) -> None:
        self.error = None
        self.error_kind = None
        self.success = None

    def _fail(self, error: AccountError) -> None:
        self.error = error.message
        self.error_kind = error.kind
        logger.info(f"{type(self).__name__} failed: {error.kind.value}")

    async def _obtain_record(self, description: str) -> Optional[VerificationRecord]:
        """
        Ask the gate for a fresh password proof.

        Returns:
            The record, or None if the prompt was dismissed or superseded
        """
        self._gate_future = self.session.gate.request(description)
        try:
            return await self._gate_future
        except Cancelled:
            logger.debug(f"{type(self).__name__}: verification cancelled")
            return None
        finally:
            self._gate_future = None

    def _start_countdown(self, record: VerificationRecord) -> None:
        self._stop_countdown()
        self.record = record
        self.countdown = Countdown(record, on_expire=self._on_expired, clock=self.session.clock)

    def _stop_countdown(self) -> None:
        if self.countdown:
            self.countdown.stop()
        self.countdown = None

    def _valid_record(self) -> VerificationRecord:
        """
        Authoritative expiry check before a protected call.

        Raises:
            VerificationExpired: The flow has already been reset to its
            verification step
        """
        try:
            return require_valid_record(self.record, self.now())
        except VerificationExpired as e:
            self._on_expired()
            self._fail(e)
            raise

    def _fresh(self, record: VerificationRecord) -> VerificationRecord:
        """Expiry check for a one-shot record that is not held by the flow."""
        try:
            return require_valid_record(record, self.now())
        except VerificationExpired as e:
            self._fail(e)
            raise

    def _on_expired(self) -> None:
        self._reset()
        self.error = VerificationExpired.default_message
        self.error_kind = ErrorKind.VERIFICATION_EXPIRED

    def _reset(self) -> None:
        """Drop the password proof and all transient input."""
        self._stop_countdown()
        self.record = None

    def _discard(self) -> None:
        """Clear transient state and messages, as after a cancel."""
        self._reset()
        self._clear_messages()

    def cancel(self) -> None:
        """
        Abort the flow: dismiss an open prompt, reject any request still in
        flight with Cancelled and clear transient state.
        """
        self._generation += 1
        self.busy = False
        if self._gate_future is not None and not self._gate_future.done():
            self.session.gate.cancel()
        self._discard()
