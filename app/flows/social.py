"""
Link and unlink social identities.

Linking leaves the app: the user is redirected to the provider and comes back
on the callback route in a fresh page. Everything the callback needs (the
anti-forgery nonce, connector, password proof and the provider's
verification id) is persisted in the session store before the redirect and
cleared on every callback outcome.
"""

import enum
import hmac
import logging
import secrets
from datetime import datetime
from typing import List, Mapping, Optional

from app.core.errors import (
    AccountError,
    PossibleCSRF,
    ProviderRejected,
    ValidationFailed,
    VerificationExpired,
)
from app.core.verification import VerificationRecord
from app.flows.base import Confirm, Flow
from app.schemas.account import SocialConnector

logger = logging.getLogger(__name__)

STATE_KEY = "social_link_state"
CONNECTOR_KEY = "social_link_connector"
VERIFICATION_KEY = "social_link_verification"
VERIFICATION_EXPIRES_KEY = "social_link_verification_expires_at"
VERIFICATION_RECORD_KEY = "social_link_verification_record"

SOCIAL_LINK_KEYS = (
    STATE_KEY,
    CONNECTOR_KEY,
    VERIFICATION_KEY,
    VERIFICATION_EXPIRES_KEY,
    VERIFICATION_RECORD_KEY,
)

# Passwordless connectors are sign-in methods, not linkable identities
_PASSWORDLESS_TARGETS = ("email", "sms")


class SocialLinkStep(str, enum.Enum):
    IDLE = "idle"
    AWAITING_PASSWORD_PROOF = "awaiting_password_proof"
    REDIRECTING_TO_PROVIDER = "redirecting_to_provider"
    CALLBACK_RECEIVED = "callback_received"
    IDENTITY_VERIFIED = "identity_verified"
    BOUND = "bound"
    FAILED = "failed"


class SocialLinkFlow(Flow):
    def __init__(self, session):
        super().__init__(session)
        self.store = session.store
        self.state = SocialLinkStep.IDLE
        self.connectors: List[SocialConnector] = []
        self.available: List[SocialConnector] = []
        self.authorization_uri: Optional[str] = None

    async def load_connectors(self) -> List[SocialConnector]:
        """
        Fetch the social connectors that can still be linked to this account.
        """
        async with self._in_flight():
            try:
                connectors = await self.api.get_social_connectors()
                profile = await self.session.profile.get()
            except AccountError as e:
                self._fail(e)
                raise

        self.connectors = [
            c for c in connectors
            if c.platform is not None or c.target.lower() not in _PASSWORDLESS_TARGETS
        ]
        linked = {target.lower() for target in profile.identities}
        self.available = [c for c in self.connectors if c.target.lower() not in linked]
        return self.available

    async def start_link(self, connector_id: str) -> Optional[str]:
        """
        Begin linking: obtain a password proof, persist the callback context
        and ask the provider for an authorization URL.

        Returns:
            str: The URL to redirect to, or None if the prompt was dismissed
        """
        self._clear_persisted()
        self._clear_messages()
        self.state = SocialLinkStep.AWAITING_PASSWORD_PROOF

        record = await self._obtain_record("Linking a social account requires verifying your identity")
        if record is None:
            self.state = SocialLinkStep.IDLE
            return None

        nonce = secrets.token_urlsafe(32)
        self.store.set(STATE_KEY, nonce)
        self.store.set(CONNECTOR_KEY, connector_id)
        self.store.set(VERIFICATION_KEY, record.id)
        self.store.set(VERIFICATION_EXPIRES_KEY, record.expires_at.isoformat())

        async with self._in_flight():
            try:
                self._fresh(record)
                result = await self.api.start_social_verification(
                    connector_id,
                    self.session.social_redirect_uri,
                    nonce,
                    record.id,
                )
            except AccountError as e:
                self._clear_persisted()
                self.state = SocialLinkStep.IDLE
                self._fail(e)
                raise

        self.store.set(VERIFICATION_RECORD_KEY, result.verification_id)
        self.authorization_uri = result.authorization_uri
        self.state = SocialLinkStep.REDIRECTING_TO_PROVIDER
        logger.info(f"Redirecting to social provider for connector {connector_id}")
        return result.authorization_uri

    async def handle_callback(self, params: Mapping[str, str]) -> bool:
        """
        Complete linking from the provider's redirect.

        The state parameter is checked against the persisted nonce before any
        request is made. Persisted link data is cleared whatever the outcome.

        Raises:
            PossibleCSRF: State missing or not the one issued
            VerificationExpired: Link data missing or the password proof expired
            ProviderRejected: The provider reported an error instead of a code
        """
        self._clear_messages()
        self.state = SocialLinkStep.CALLBACK_RECEIVED

        async with self._in_flight():
            try:
                expected_state = self.store.get(STATE_KEY)
                received_state = params.get("state") or ""
                if not expected_state or not hmac.compare_digest(expected_state.encode(), received_state.encode()):
                    raise PossibleCSRF()

                connector_id = self.store.get(CONNECTOR_KEY)
                record_id = self.store.get(VERIFICATION_KEY)
                expires_at = self.store.get(VERIFICATION_EXPIRES_KEY)
                verification_id = self.store.get(VERIFICATION_RECORD_KEY)
                if not (connector_id and record_id and expires_at and verification_id):
                    raise VerificationExpired("Link session data is missing. Please try again")

                if not params.get("code"):
                    raise ProviderRejected(
                        params.get("error_description") or params.get("error") or "Authorization was not completed"
                    )

                record = VerificationRecord(id=record_id, expires_at=datetime.fromisoformat(expires_at))
                self._fresh(record)

                result = await self.api.verify_social_identity(connector_id, verification_id, params)
                self.state = SocialLinkStep.IDENTITY_VERIFIED
                await self.api.bind_social_identity(record.id, result.verification_record_id)
            except AccountError as e:
                self.state = SocialLinkStep.FAILED
                self._fail(e)
                logger.warning(f"Social link callback failed: {e.kind.value}")
                raise
            finally:
                self._clear_persisted()

        self.session.profile.invalidate()
        self.state = SocialLinkStep.BOUND
        self.success = "Social account linked"
        logger.info(f"Social identity linked via connector {connector_id}")
        return True

    async def unlink(self, target: str, confirm: Confirm) -> bool:
        """Remove a linked identity by its connector target."""
        if not target:
            raise ValidationFailed("Unknown social account")
        if not await confirm(f"Unlink your {target} account?"):
            return False

        record = await self._obtain_record("Unlinking a social account requires verifying your identity")
        if record is None:
            return False

        self._clear_messages()
        async with self._in_flight():
            try:
                self._fresh(record)
                await self.api.unlink_social_identity(target, record.id)
            except AccountError as e:
                self._fail(e)
                raise

        profile = self.session.profile.profile
        if profile is not None:
            identities = {k: v.model_dump() for k, v in profile.identities.items() if k != target}
            self.session.profile.merge({"identities": identities})
        else:
            self.session.profile.invalidate()
        self.success = "Social account unlinked"
        logger.info(f"Social identity unlinked: {target}")
        return True

    def _clear_persisted(self) -> None:
        self.store.remove_all(SOCIAL_LINK_KEYS)

    def _discard(self) -> None:
        super()._discard()
        if self.state in (SocialLinkStep.AWAITING_PASSWORD_PROOF, SocialLinkStep.REDIRECTING_TO_PROVIDER):
            self._clear_persisted()
        self.authorization_uri = None
        self.state = SocialLinkStep.IDLE
