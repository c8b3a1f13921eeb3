"""
Pydantic schemas for Logto verification endpoints (/api/verifications).
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Literal

IdentifierType = Literal["email", "phone"]


class VerificationResponse(BaseModel):
    """A verification record issued by the provider"""
    verification_record_id: str
    expires_at: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class VerificationIdentifier(BaseModel):
    type: IdentifierType
    value: str


class SendCodeResponse(BaseModel):
    """Response after sending a one-time code"""
    verification_id: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class VerifyCodeRequest(BaseModel):
    """Request to exchange a 6-digit code for a verification record"""
    identifier: VerificationIdentifier
    verification_id: str
    code: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True
