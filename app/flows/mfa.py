"""
Two-factor settings: authenticator app (TOTP) enrollment, backup codes,
removing and renaming factors.
"""

import enum
import logging
from typing import List, Optional

from app.core.errors import AccountError, CodeInvalid, ValidationFailed, VerificationExpired
from app.core.verification import validate_code_format
from app.flows.base import Confirm, Flow
from app.schemas.account import MfaType, MfaVerification, TotpSecretResponse

logger = logging.getLogger(__name__)

BACKUP_CODES_WARNING = (
    "These backup codes will not be shown again. "
    "Make sure you have saved them somewhere safe before closing."
)


class MfaStep(str, enum.Enum):
    NOT_ENROLLED = "not_enrolled"
    SECRET_ISSUED = "secret_issued"
    AWAITING_CODE = "awaiting_code"
    ENROLLED = "enrolled"


class MfaFlow(Flow):
    def __init__(self, session):
        super().__init__(session)
        self.factors: List[MfaVerification] = []
        self.factors_stale = True
        self.state = MfaStep.NOT_ENROLLED
        self.secret: Optional[str] = None
        self.secret_qr_code: Optional[str] = None
        self.backup_codes: Optional[List[str]] = None

    @property
    def has_totp(self) -> bool:
        return any(f.type == MfaType.TOTP for f in self.factors)

    @property
    def has_backup_codes(self) -> bool:
        return any(f.type == MfaType.BACKUP_CODE for f in self.factors)

    async def load(self) -> List[MfaVerification]:
        """Fetch the enrolled factors."""
        async with self._in_flight():
            try:
                factors = await self.api.get_mfa_verifications()
            except AccountError as e:
                self._fail(e)
                raise

        self._set_factors(factors)
        return factors

    def _set_factors(self, factors: List[MfaVerification]) -> None:
        self.factors = factors
        self.factors_stale = False
        if self.state not in (MfaStep.SECRET_ISSUED, MfaStep.AWAITING_CODE):
            self.state = MfaStep.ENROLLED if self.has_totp else MfaStep.NOT_ENROLLED

    async def _refresh(self) -> None:
        self.factors_stale = True
        try:
            self._set_factors(await self.api.get_mfa_verifications())
        except AccountError as e:
            logger.warning(f"Could not refresh MFA factors: {e.message}")

    async def start_totp(self) -> Optional[TotpSecretResponse]:
        """
        Issue a TOTP secret for the authenticator app.

        The password proof obtained here is kept for the bind step and the
        countdown runs until the code is submitted.

        Returns:
            The secret and QR code, or None if the prompt was dismissed
        """
        if self.has_totp:
            raise ValidationFailed("An authenticator app is already set up")

        self.cancel()
        record = await self._obtain_record("Setting up an authenticator app requires verifying your identity")
        if record is None:
            return None
        self._start_countdown(record)

        async with self._in_flight():
            try:
                self._valid_record()
                result = await self.api.create_totp_secret(record.id)
            except AccountError as e:
                self._reset()
                self._fail(e)
                raise

        self.secret = result.secret
        self.secret_qr_code = result.secret_qr_code
        self.state = MfaStep.SECRET_ISSUED
        return result

    async def bind_totp(self, code: str) -> bool:
        """
        Confirm enrollment with the first code from the authenticator app.

        Raises:
            CodeInvalid: Wrong code; the secret stays on screen for a retry
            VerificationExpired: The proof expired; setup starts over
        """
        self._clear_messages()
        if self.state != MfaStep.SECRET_ISSUED:
            error = ValidationFailed("Please start authenticator setup first")
            self._fail(error)
            raise error
        try:
            code = validate_code_format(code)
        except ValidationFailed as e:
            self._fail(e)
            raise

        async with self._in_flight():
            record = self._valid_record()
            self.state = MfaStep.AWAITING_CODE
            try:
                await self.api.verify_and_bind_totp(code, record.id)
            except VerificationExpired as e:
                self._on_expired()
                self._fail(e)
                raise
            except AccountError as e:
                self.state = MfaStep.SECRET_ISSUED
                self._fail(e)
                if isinstance(e, CodeInvalid):
                    self.error = "Invalid code. Check the time on your device and try again"
                raise

        self._reset()
        self.state = MfaStep.ENROLLED
        self.success = "Authenticator app added"
        logger.info("TOTP factor bound")
        await self._refresh()
        return True

    async def generate_backup_codes(self) -> Optional[List[str]]:
        """
        Generate a new set of backup codes, replacing any existing set.

        The codes are kept until dismiss_backup_codes() is acknowledged.
        """
        record = await self._obtain_record("Generating backup codes requires verifying your identity")
        if record is None:
            return None

        self._clear_messages()
        async with self._in_flight():
            try:
                self._fresh(record)
                result = await self.api.generate_backup_codes(record.id)
            except AccountError as e:
                self._fail(e)
                raise

        self.backup_codes = result.codes
        self.success = "Backup codes generated"
        await self._refresh()
        return result.codes

    @property
    def backup_codes_warning(self) -> Optional[str]:
        return BACKUP_CODES_WARNING if self.backup_codes else None

    def dismiss_backup_codes(self, acknowledged: bool) -> bool:
        """
        Close the backup-codes view. The codes are discarded only once the user
        has acknowledged they were saved.
        """
        if self.backup_codes and not acknowledged:
            return False
        self.backup_codes = None
        return True

    async def delete_factor(self, verification_id: str, confirm: Confirm) -> bool:
        """
        Remove an enrolled factor after an explicit confirmation and a fresh
        password proof.
        """
        factor = self._find(verification_id)
        if not await confirm(f"Remove {self._describe(factor)}?"):
            return False

        record = await self._obtain_record("Removing a two-factor method requires verifying your identity")
        if record is None:
            return False

        self._clear_messages()
        async with self._in_flight():
            try:
                self._fresh(record)
                await self.api.delete_mfa_verification(verification_id, record.id)
            except AccountError as e:
                self._fail(e)
                raise

        self._set_factors([f for f in self.factors if f.id != verification_id])
        self.success = f"{self._describe(factor).capitalize()} removed"
        logger.info(f"MFA factor removed: {factor.type.value}")
        await self._refresh()
        return True

    async def rename_factor(self, verification_id: str, name: str) -> bool:
        name = (name or "").strip()
        if not name:
            error = ValidationFailed("Please enter a name")
            self._fail(error)
            raise error
        self._find(verification_id)

        record = await self._obtain_record("Renaming a two-factor method requires verifying your identity")
        if record is None:
            return False

        self._clear_messages()
        async with self._in_flight():
            try:
                self._fresh(record)
                await self.api.update_mfa_verification_name(verification_id, name, record.id)
            except AccountError as e:
                self._fail(e)
                raise

        self.factors = [f.model_copy(update={"name": name}) if f.id == verification_id else f for f in self.factors]
        self.success = "Name updated"
        return True

    def _find(self, verification_id: str) -> MfaVerification:
        for factor in self.factors:
            if factor.id == verification_id:
                return factor
        raise ValidationFailed("Unknown two-factor method")

    @staticmethod
    def _describe(factor: MfaVerification) -> str:
        if factor.type == MfaType.TOTP:
            return "the authenticator app"
        if factor.type == MfaType.BACKUP_CODE:
            return "the backup codes"
        return factor.name or "the passkey"

    def _discard_secret(self) -> None:
        self.secret = None
        self.secret_qr_code = None

    def _reset(self) -> None:
        super()._reset()
        self._discard_secret()
        self.state = MfaStep.ENROLLED if self.has_totp else MfaStep.NOT_ENROLLED
