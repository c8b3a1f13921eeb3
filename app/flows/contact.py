"""
Change or remove the primary email address or phone number.

Changing takes two proofs: a password proof for the account (from the gate)
and a one-time code sent to the new value. Both ids go into the final update
call. Removing needs only the password proof.
"""

import enum
import logging
from typing import Optional

from app.core.errors import AccountError, CodeInvalid, ValidationFailed, VerificationExpired
from app.core.formatting import normalize_email, normalize_phone
from app.core.verification import VerificationRecord, validate_code_format
from app.flows.base import Confirm, Flow
from app.schemas.account import UserProfile
from app.schemas.verification import IdentifierType

logger = logging.getLogger(__name__)


class ContactStep(str, enum.Enum):
    IDLE = "idle"
    EDITING = "editing"
    CODE_REQUESTED = "code_requested"
    CODE_VERIFIED = "code_verified"
    SUBMITTED = "submitted"


_LABELS = {"email": "email address", "phone": "phone number"}
_PROFILE_FIELDS = {"email": "primary_email", "phone": "primary_phone"}


class ContactFlow(Flow):
    def __init__(self, session, identifier_type: IdentifierType):
        if identifier_type not in _LABELS:
            raise ValueError(f"Unsupported identifier type: {identifier_type}")
        super().__init__(session)
        self.identifier_type = identifier_type
        self.state = ContactStep.IDLE
        self.new_value = ""
        self.code_sent = False
        self.verification_id: Optional[str] = None
        self.new_identifier_record_id: Optional[str] = None
        # Normalized value the outstanding code was sent to
        self._code_value: Optional[str] = None

    @property
    def label(self) -> str:
        return _LABELS[self.identifier_type]

    def _normalize(self, value: str) -> str:
        if self.identifier_type == "email":
            return normalize_email(value)
        return normalize_phone(value)

    def _normalized_or_none(self, value: str) -> Optional[str]:
        try:
            return self._normalize(value)
        except ValidationFailed:
            return None

    async def start_edit(self) -> Optional[VerificationRecord]:
        """Get a password proof and open the edit form; None if the prompt was dismissed."""
        self.cancel()
        record = await self._obtain_record(f"Changing your {self.label} requires verifying your identity")
        if record is None:
            return None

        self._start_countdown(record)
        self.state = ContactStep.EDITING
        return record

    def set_value(self, value: str) -> None:
        """
        Update the candidate value. A code sent to a different value no
        longer applies and has to be requested again.
        """
        self.new_value = value
        if self._code_value is not None and self._normalized_or_none(value) != self._code_value:
            self._drop_code()
            if self.state in (ContactStep.CODE_REQUESTED, ContactStep.CODE_VERIFIED):
                self.state = ContactStep.EDITING

    async def send_code(self) -> str:
        """
        Send a one-time code to the candidate value.

        Returns:
            str: The provider's verification id for the code
        """
        if self.state not in (ContactStep.EDITING, ContactStep.CODE_REQUESTED, ContactStep.CODE_VERIFIED):
            raise ValidationFailed("Verify your identity first")

        self._clear_messages()
        async with self._in_flight():
            try:
                self._valid_record()
                value = self._normalize(self.new_value)
                result = await self.api.send_verification_code(self.identifier_type, value)
            except AccountError as e:
                self._fail(e)
                raise

        self.verification_id = result.verification_id
        self._code_value = value
        self.code_sent = True
        self.new_identifier_record_id = None
        self.state = ContactStep.CODE_REQUESTED
        logger.info(f"Verification code sent to new {self.identifier_type}")
        return result.verification_id

    async def verify_code(self, code: str) -> str:
        """
        Exchange the code for a verification record of the new value.

        A wrong code leaves the code step open so the user can retry; nothing
        is changed on the account.

        Returns:
            str: The new-identifier verification record id
        """
        self._clear_messages()
        try:
            if not self.code_sent or not self.verification_id:
                raise ValidationFailed("Please request a verification code first")
            code = validate_code_format(code)
            value = self._normalized_or_none(self.new_value)
            if value is None or value != self._code_value:
                raise CodeInvalid(f"The code was sent to a different {self.label}. Please request a new code")
        except AccountError as e:
            self._fail(e)
            raise

        async with self._in_flight():
            try:
                result = await self.api.verify_code(self.identifier_type, value, self.verification_id, code)
            except AccountError as e:
                self._fail(e)
                raise

        self.new_identifier_record_id = result.verification_record_id
        self.state = ContactStep.CODE_VERIFIED
        return result.verification_record_id

    async def submit(self) -> bool:
        """Apply the new value using both proofs."""
        self._clear_messages()
        value = self._normalized_or_none(self.new_value)
        if not self.new_identifier_record_id or value is None or value != self._code_value:
            error = ValidationFailed(f"Please verify the code sent to your new {self.label} first")
            self._fail(error)
            raise error

        async with self._in_flight():
            try:
                record = self._valid_record()
                if self.identifier_type == "email":
                    updated = await self.api.update_primary_email(value, record.id, self.new_identifier_record_id)
                else:
                    updated = await self.api.update_primary_phone(value, record.id, self.new_identifier_record_id)
            except VerificationExpired as e:
                self._on_expired()
                self._fail(e)
                raise
            except AccountError as e:
                self._fail(e)
                raise

        self._apply_to_profile(updated, value)
        self._reset()
        self.state = ContactStep.SUBMITTED
        self.success = f"Your {self.label} has been updated"
        logger.info(f"Primary {self.identifier_type} updated")
        return True

    async def verify_and_update(self, code: str) -> bool:
        await self.verify_code(code)
        return await self.submit()

    async def delete(self, confirm: Optional[Confirm] = None) -> bool:
        """
        Remove the primary value.

        Returns:
            bool: False if the user backed out of the confirmation or prompt
        """
        if confirm is not None and not await confirm(f"Remove your {self.label}?"):
            return False

        record = await self._obtain_record(f"Removing your {self.label} requires verifying your identity")
        if record is None:
            return False

        self._clear_messages()
        async with self._in_flight():
            try:
                self._fresh(record)
                if self.identifier_type == "email":
                    await self.api.delete_primary_email(record.id)
                else:
                    await self.api.delete_primary_phone(record.id)
            except AccountError as e:
                self._fail(e)
                raise

        # A change in progress no longer applies once the value is gone
        self._reset()
        self.session.profile.merge({_PROFILE_FIELDS[self.identifier_type]: None})
        self.success = f"Your {self.label} has been removed"
        logger.info(f"Primary {self.identifier_type} removed")
        return True

    def _apply_to_profile(self, updated: Optional[UserProfile], value: str) -> None:
        if updated is not None:
            self.session.profile.merge_profile(updated)
        else:
            self.session.profile.merge({_PROFILE_FIELDS[self.identifier_type]: value})

    def _drop_code(self) -> None:
        self.code_sent = False
        self.verification_id = None
        self.new_identifier_record_id = None
        self._code_value = None

    def _reset(self) -> None:
        super()._reset()
        self._drop_code()
        self.new_value = ""
        self.state = ContactStep.IDLE
