"""
Runtime configuration for the account-center SPA.
"""

from fastapi import APIRouter

from app.core.config import settings
from app.schemas.account import SpaConfigResponse

router = APIRouter(tags=["Account Center"])


@router.get("/user/config.json", response_model=SpaConfigResponse, response_model_by_alias=True)
async def spa_config():
    """Logto endpoint and app id the SPA signs in with."""
    return SpaConfigResponse(
        logto_endpoint=settings.SPA_ENDPOINT,
        logto_app_id=settings.LOGTO_SPA_APP_ID,
        app_url=settings.APP_URL,
    )
