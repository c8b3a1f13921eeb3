from app.flows.contact import ContactFlow, ContactStep
from app.flows.mfa import MfaFlow, MfaStep
from app.flows.password import PasswordFlow, PasswordStep
from app.flows.profile import ProfileFlow
from app.flows.social import SocialLinkFlow, SocialLinkStep

__all__ = [
    "ContactFlow",
    "ContactStep",
    "MfaFlow",
    "MfaStep",
    "PasswordFlow",
    "PasswordStep",
    "ProfileFlow",
    "SocialLinkFlow",
    "SocialLinkStep",
]
