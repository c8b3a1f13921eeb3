"""
Change or set the account password.

With an existing password the user first proves the current one (inline or
through the gate), then submits the new password while that proof is still
valid. Accounts without a password (social sign-up) set one directly.
"""

import enum
import logging
from typing import Optional

from app.core.errors import AccountError, ValidationFailed, VerificationExpired
from app.core.formatting import validate_new_password
from app.core.verification import VerificationRecord
from app.flows.base import Flow

logger = logging.getLogger(__name__)


class PasswordStep(str, enum.Enum):
    SET_FORM = "set_form"
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    SUBMITTED = "submitted"


class PasswordFlow(Flow):
    def __init__(self, session, has_password: bool):
        super().__init__(session)
        self.has_password = has_password
        self.new_password = ""
        self.confirm_password = ""
        self.state = PasswordStep.UNVERIFIED if has_password else PasswordStep.SET_FORM

    async def verify_current(self, password: str) -> VerificationRecord:
        """
        Inline current-password step.

        Raises:
            InvalidCredentials: Wrong password; the flow stays unverified
        """
        if self.state != PasswordStep.UNVERIFIED:
            raise ValidationFailed("Current password is not required at this step")

        self._clear_messages()
        async with self._in_flight():
            try:
                record = await self.session.broker.verify_password(password)
            except AccountError as e:
                self._fail(e)
                raise

        self._accept(record)
        return record

    async def verify_with_gate(self) -> Optional[VerificationRecord]:
        """Current-password step through the shared prompt; None if dismissed."""
        if self.state != PasswordStep.UNVERIFIED:
            raise ValidationFailed("Current password is not required at this step")

        self._clear_messages()
        record = await self._obtain_record("Changing your password requires verifying your identity")
        if record is None:
            self.cancel()
            return None

        self._accept(record)
        return record

    def _accept(self, record: VerificationRecord) -> None:
        self._start_countdown(record)
        self.state = PasswordStep.VERIFIED

    async def submit(self, new_password: Optional[str] = None, confirm_password: Optional[str] = None) -> bool:
        """
        Validate and submit the new password.

        Raises:
            ValidationFailed: Client-side check failed; nothing was sent
            VerificationExpired: The proof expired; the flow is back at the
                current-password step and the new password was discarded
            PasswordRejected: Provider password policy rejected it
        """
        if new_password is not None:
            self.new_password = new_password
        if confirm_password is not None:
            self.confirm_password = confirm_password

        self._clear_messages()

        problems = validate_new_password(self.new_password, self.confirm_password)
        if problems:
            error = ValidationFailed(problems[0])
            self._fail(error)
            raise error

        if self.has_password and self.state != PasswordStep.VERIFIED:
            error = ValidationFailed("Please verify your current password first")
            self._fail(error)
            raise error

        async with self._in_flight():
            try:
                if self.has_password:
                    record = self._valid_record()
                    await self.api.update_password(self.new_password, record.id)
                else:
                    await self.api.set_password(self.new_password)
            except VerificationExpired as e:
                self._on_expired()
                self._fail(e)
                raise
            except AccountError as e:
                self._fail(e)
                raise

        was_set = not self.has_password
        self._reset()
        self.state = PasswordStep.SUBMITTED
        self.success = "Your password has been set" if was_set else "Your password has been changed"
        if was_set:
            self.has_password = True
            self.session.profile.merge({"has_password": True})
        logger.info("Password set" if was_set else "Password changed")
        return True

    def start_over(self) -> None:
        """Leave the success view for another change."""
        self.cancel()
        self.state = PasswordStep.UNVERIFIED if self.has_password else PasswordStep.SET_FORM

    def _reset(self) -> None:
        super()._reset()
        self.new_password = ""
        self.confirm_password = ""
        self.state = PasswordStep.UNVERIFIED if self.has_password else PasswordStep.SET_FORM
