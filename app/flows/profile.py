"""
Basic and extended profile editing. No verification record is needed.
"""

import logging
from typing import Optional

from app.core.errors import AccountError, ValidationFailed
from app.core.formatting import map_locale_to_language
from app.flows.base import Flow
from app.schemas.account import ExtendedProfile, UpdateExtendedProfileRequest, UpdateProfileRequest, UserProfile

logger = logging.getLogger(__name__)

EXTENDED_FIELDS = set(ExtendedProfile.model_fields)


class ProfileFlow(Flow):
    async def load(self, force: bool = False) -> UserProfile:
        try:
            return await self.session.profile.get(force=force)
        except AccountError as e:
            self._fail(e)
            raise

    async def update_profile(self, name: Optional[str] = None, avatar: Optional[str] = None) -> UserProfile:
        """
        Update display name and avatar. The username is read-only here.
        """
        self._clear_messages()
        data = UpdateProfileRequest(name=(name or "").strip() or None, avatar=(avatar or "").strip() or None)
        if data.name is None and data.avatar is None:
            error = ValidationFailed("Nothing to update")
            self._fail(error)
            raise error

        async with self._in_flight():
            try:
                updated = await self.api.update_profile(data)
            except AccountError as e:
                self._fail(e)
                raise

        self.success = "Profile updated"
        return self.session.profile.merge_profile(updated)

    async def update_extended_profile(self, **fields) -> dict:
        """
        Update OIDC standard claims (given_name, family_name, website, ...).

        Returns:
            dict: The extended profile as returned by the provider
        """
        self._clear_messages()
        unknown = set(fields) - EXTENDED_FIELDS
        if unknown:
            error = ValidationFailed(f"Unknown profile fields: {', '.join(sorted(unknown))}")
            self._fail(error)
            raise error

        cleaned = {k: v.strip() if isinstance(v, str) else v for k, v in fields.items()}
        cleaned = {k: v for k, v in cleaned.items() if v not in (None, "")}
        website = cleaned.get("website")
        if website and not website.startswith(("http://", "https://")):
            error = ValidationFailed("Website must start with http:// or https://")
            self._fail(error)
            raise error

        data = UpdateExtendedProfileRequest(**cleaned)
        async with self._in_flight():
            try:
                result = await self.api.update_extended_profile(data)
            except AccountError as e:
                self._fail(e)
                raise

        self.session.profile.merge_extended(data.model_dump(exclude_none=True))
        self.success = "Profile updated"
        return result

    def preferred_language(self) -> Optional[str]:
        profile = self.session.profile.profile
        if profile is None:
            return None
        return map_locale_to_language(profile.profile.locale)
