"""
Pydantic schemas for Logto Management API users and backend login.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional


class LogtoUser(BaseModel):
    """User record as returned by the Management API (/api/users)."""
    id: str
    username: Optional[str] = None
    primary_email: Optional[str] = None
    primary_phone: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    custom_data: Dict[str, Any] = Field(default_factory=dict)
    identities: Dict[str, Any] = Field(default_factory=dict)
    last_sign_in_at: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    is_suspended: bool = False
    has_password: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class UpdateUserData(BaseModel):
    username: Optional[str] = None
    primary_email: Optional[str] = None
    primary_phone: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None
    custom_data: Optional[Dict[str, Any]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class LoginRequest(BaseModel):
    """Request schema for backend login; username may also be an email."""
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool
    message: str
    user_id: Optional[str] = Field(default=None, serialization_alias="userId")


class LoginResult(BaseModel):
    """Outcome of a credential check against the Management API."""
    success: bool
    user: Optional[LogtoUser] = None
    error: Optional[str] = None
