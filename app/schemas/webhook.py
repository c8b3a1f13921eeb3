"""
Pydantic schemas for Logto webhook deliveries.
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
import enum


class WebhookEvent(str, enum.Enum):
    USER_CREATED = "User.Created"
    USER_DELETED = "User.Deleted"
    USER_DATA_UPDATED = "User.Data.Updated"
    USER_SUSPENSION_STATUS_UPDATED = "User.SuspensionStatus.Updated"
    POST_REGISTER = "PostRegister"
    POST_RESET_PASSWORD = "PostResetPassword"
    POST_SIGN_IN = "PostSignIn"


class WebhookPayload(BaseModel):
    hook_id: str
    event: str
    created_at: str
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    user: Optional[Dict[str, Any]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
