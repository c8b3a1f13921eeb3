"""
Cached read model of the signed-in user's profile.

The only resource shared between flows. A flow that reports success either
merges the fields it knows changed or invalidates the cache so the next read
refetches.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from app.core.verification import Clock, utc_now
from app.schemas.account import UserProfile

logger = logging.getLogger(__name__)

PROFILE_STALE_AFTER = timedelta(minutes=5)


class ProfileCache:
    def __init__(self, account_api, clock: Clock = utc_now, stale_after: timedelta = PROFILE_STALE_AFTER):
        self.account_api = account_api
        self.clock = clock
        self.stale_after = stale_after
        self._profile: Optional[UserProfile] = None
        self._fetched_at: Optional[datetime] = None
        self.invalidated = False

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    def is_stale(self) -> bool:
        if self._profile is None or self.invalidated or self._fetched_at is None:
            return True
        return self.clock() - self._fetched_at >= self.stale_after

    async def get(self, force: bool = False) -> UserProfile:
        """Return the cached profile, fetching it when missing, invalidated or stale."""
        if force or self.is_stale():
            self.set(await self.account_api.get_profile())
        return self._profile

    def set(self, profile: UserProfile) -> None:
        self._profile = profile
        self._fetched_at = self.clock()
        self.invalidated = False

    def merge(self, fields: Dict[str, Any]) -> Optional[UserProfile]:
        """Merge top-level profile fields (snake_case) into the cached profile."""
        if self._profile is None:
            self.invalidate()
            return None
        data = self._profile.model_dump()
        data.update(fields)
        self._profile = UserProfile.model_validate(data)
        return self._profile

    def merge_profile(self, updated: UserProfile) -> UserProfile:
        """Merge a profile returned by the provider over the cached one."""
        if self._profile is None:
            self.set(updated)
            return updated
        return self.merge(updated.model_dump(exclude_unset=True))

    def merge_extended(self, fields: Dict[str, Any]) -> Optional[UserProfile]:
        """Merge extended-profile fields (profile.*) into the cached profile."""
        if self._profile is None:
            self.invalidate()
            return None
        extended = self._profile.profile.model_dump()
        extended.update(fields)
        return self.merge({"profile": extended})

    def invalidate(self) -> None:
        logger.debug("Profile cache invalidated")
        self.invalidated = True
