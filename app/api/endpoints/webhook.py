"""
Logto webhook receiver.

Logto calls this endpoint for user lifecycle and interaction events:
- User.Created / User.Deleted / User.Data.Updated
- User.SuspensionStatus.Updated
- PostRegister / PostSignIn / PostResetPassword

Security: guarded by the shared API key and, when LOGTO_WEBHOOK_SECRET is
set, by the HMAC-SHA256 signature of the raw body.
"""

import json
import logging
from typing import Awaitable, Callable, Dict
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.core.config import settings
from app.core.deps import require_api_key
from app.core.security import WEBHOOK_SIGNATURE_HEADER, verify_webhook_signature
from app.schemas.webhook import WebhookEvent, WebhookPayload

router = APIRouter(tags=["Webhooks"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


@router.post("/webhook")
async def logto_webhook(
    request: Request,
    signature: str = Header(None, alias=WEBHOOK_SIGNATURE_HEADER)
):
    # Signature is computed over the raw body, so read it before parsing
    payload = await request.body()

    if settings.LOGTO_WEBHOOK_SECRET and not verify_webhook_signature(
        payload, signature, settings.LOGTO_WEBHOOK_SECRET
    ):
        logger.warning("Invalid webhook signature")
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Invalid signature"})

    try:
        event = WebhookPayload.model_validate(json.loads(payload))
    except (ValueError, ValidationError):
        logger.error("Invalid webhook payload")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid payload"})

    logger.info(f"Received webhook: {event.event} (hook {event.hook_id})")

    try:
        await dispatch_event(event)
    except Exception as e:
        logger.error(f"Error processing webhook {event.event}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"}
        )

    return {"success": True}


async def dispatch_event(event: WebhookPayload) -> None:
    handler = EVENT_HANDLERS.get(event.event)
    if handler is None:
        logger.debug(f"Unhandled webhook event: {event.event}")
        return
    await handler(event)


def _user_id(event: WebhookPayload) -> str:
    user = event.user or event.data or {}
    return user.get("id", "unknown")


async def handle_user_created(event: WebhookPayload):
    """Handle new user registration in Logto."""
    logger.info(f"User created: {_user_id(event)}")


async def handle_user_deleted(event: WebhookPayload):
    logger.info(f"User deleted: {_user_id(event)}")


async def handle_user_data_updated(event: WebhookPayload):
    logger.info(f"User data updated: {_user_id(event)}")


async def handle_suspension_status_updated(event: WebhookPayload):
    data = event.data or {}
    logger.info(f"User suspension status updated: {_user_id(event)} (suspended={data.get('isSuspended')})")


async def handle_post_register(event: WebhookPayload):
    logger.info(f"Post-register: {_user_id(event)} from {event.ip or 'unknown ip'}")


async def handle_post_sign_in(event: WebhookPayload):
    logger.info(f"Post-sign-in: {_user_id(event)} session {event.session_id or '-'}")


async def handle_post_reset_password(event: WebhookPayload):
    logger.info(f"Password reset: {_user_id(event)}")


EVENT_HANDLERS: Dict[str, Callable[[WebhookPayload], Awaitable[None]]] = {
    WebhookEvent.USER_CREATED.value: handle_user_created,
    WebhookEvent.USER_DELETED.value: handle_user_deleted,
    WebhookEvent.USER_DATA_UPDATED.value: handle_user_data_updated,
    WebhookEvent.USER_SUSPENSION_STATUS_UPDATED.value: handle_suspension_status_updated,
    WebhookEvent.POST_REGISTER.value: handle_post_register,
    WebhookEvent.POST_SIGN_IN.value: handle_post_sign_in,
    WebhookEvent.POST_RESET_PASSWORD.value: handle_post_reset_password,
}
