"""
Pydantic schemas for the Logto Account API (/api/my-account).

Logto speaks camelCase on the wire; fields are snake_case here and aliased.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional, Any
import enum


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class Address(CamelModel):
    formatted: Optional[str] = None
    street_address: Optional[str] = None
    locality: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class ExtendedProfile(CamelModel):
    family_name: Optional[str] = None
    given_name: Optional[str] = None
    middle_name: Optional[str] = None
    nickname: Optional[str] = None
    preferred_username: Optional[str] = None
    profile: Optional[str] = None
    website: Optional[str] = None
    gender: Optional[str] = None
    birthdate: Optional[str] = None
    zoneinfo: Optional[str] = None
    locale: Optional[str] = None
    address: Optional[Address] = None


class Identity(CamelModel):
    user_id: str
    details: Optional[Dict[str, Any]] = None


class UserProfile(CamelModel):
    """The signed-in user's account record as returned by GET /api/my-account."""
    id: str
    username: Optional[str] = None
    primary_email: Optional[str] = None
    primary_phone: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    custom_data: Dict[str, Any] = Field(default_factory=dict)
    identities: Dict[str, Identity] = Field(default_factory=dict)
    profile: ExtendedProfile = Field(default_factory=ExtendedProfile)
    application_id: Optional[str] = None
    is_suspended: bool = False
    has_password: bool = False
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class MfaType(str, enum.Enum):
    TOTP = "Totp"
    WEBAUTHN = "WebAuthn"
    BACKUP_CODE = "BackupCode"


class MfaVerification(CamelModel):
    id: str
    type: MfaType
    created_at: str
    name: Optional[str] = None


class SocialConnector(CamelModel):
    id: str
    target: str
    platform: Optional[str] = None
    name: Dict[str, str] = Field(default_factory=dict)
    logo: str = ""
    logo_dark: Optional[str] = None

    def display_name(self, language: str = "en") -> str:
        return self.name.get(language) or self.name.get("en") or self.target


class TotpSecretResponse(CamelModel):
    verification_id: Optional[str] = None
    secret: str
    secret_qr_code: str


class BackupCodesResponse(CamelModel):
    codes: List[str]


class SocialVerificationStart(CamelModel):
    authorization_uri: str
    verification_id: str


class UpdateProfileRequest(CamelModel):
    username: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    custom_data: Optional[Dict[str, Any]] = None


class UpdateExtendedProfileRequest(ExtendedProfile):
    pass


class SpaConfigResponse(CamelModel):
    """Runtime configuration served to the account-center SPA."""
    logto_endpoint: str
    logto_app_id: str
    app_url: str
