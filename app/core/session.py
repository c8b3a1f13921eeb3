"""
Account-center session owner.

Constructed once when the user is signed in and passed to every flow. Owns
the Account API client, the verification broker, the process-wide gate, the
profile cache and the cross-navigation store, independent of any view's
lifetime.
"""

import httpx
from typing import Optional

from app.core.config import settings
from app.core.profile_cache import ProfileCache
from app.core.session_store import SessionStore
from app.core.verification import Clock, VerificationBroker, utc_now
from app.core.verification_gate import VerificationGate
from app.services.account_api import AccessTokenGetter, AccountApiService


class AccountSession:
    def __init__(
        self,
        account_api: AccountApiService,
        store: Optional[SessionStore] = None,
        clock: Clock = utc_now,
        social_redirect_uri: Optional[str] = None,
    ):
        self.account_api = account_api
        self.clock = clock
        self.store = store if store is not None else SessionStore()
        self.broker = VerificationBroker(account_api, clock=clock)
        self.gate = VerificationGate(self.broker)
        self.profile = ProfileCache(account_api, clock=clock)
        self.social_redirect_uri = social_redirect_uri or settings.SOCIAL_REDIRECT_URI

    @classmethod
    def from_settings(
        cls,
        access_token_getter: AccessTokenGetter,
        store: Optional[SessionStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AccountSession":
        account_api = AccountApiService(settings.SPA_ENDPOINT, access_token_getter, transport=transport)
        return cls(account_api, store=store)

    def now(self):
        return self.clock()
