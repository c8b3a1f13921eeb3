"""
Backend login endpoint for trusted callers (guarded by the shared API key).

- POST /auth/login: check username-or-email + password against Logto
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.core.deps import require_api_key
from app.schemas.user import LoginRequest, LoginResponse
from app.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


def _respond(status_code: int, body: LoginResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """
    Authenticate a user by username or email.

    Returns 400 when a field is missing, 401 when the credentials are
    rejected and the Logto user id on success.
    """
    if not request.username or not request.password:
        return _respond(
            status.HTTP_400_BAD_REQUEST,
            LoginResponse(success=False, message="Missing username or password")
        )

    try:
        result = await auth_service.login(request.username, request.password)
    except Exception as e:
        logger.error(f"Login error: {e}")
        return _respond(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            LoginResponse(success=False, message="Internal server error")
        )

    if not result.success:
        return _respond(
            status.HTTP_401_UNAUTHORIZED,
            LoginResponse(success=False, message="Invalid credentials")
        )

    return _respond(
        status.HTTP_200_OK,
        LoginResponse(success=True, message="Login successful", user_id=result.user.id)
    )
