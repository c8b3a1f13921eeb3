"""
FastAPI dependencies for protecting the extension API.
"""

import logging
from fastapi import Header, HTTPException, status
from typing import Optional

from app.core.config import settings
from app.core.security import extract_api_key, api_key_matches

logger = logging.getLogger(__name__)


async def require_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    authorization: Optional[str] = Header(None),
) -> None:
    """
    Guard /ext/auth/* and /ext/webhook/* with the shared API key.

    When API_KEY is not configured the check is skipped with a warning.

    Raises:
        HTTPException 401: If the key is missing or wrong
    """
    if not settings.API_KEY:
        logger.warning("API_KEY not configured, skipping authentication")
        return

    api_key = extract_api_key(x_api_key, authorization)

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"success": False, "message": "Missing API key"}
        )

    if not api_key_matches(api_key, settings.API_KEY):
        logger.warning("Invalid API key attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"success": False, "message": "Invalid API key"}
        )
