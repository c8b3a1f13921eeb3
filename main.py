import os
import time
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.logging_config import get_logger, setup_logging
from app.api.endpoints import auth, health, user_config, webhook

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    setup_logging(settings.LOG_LEVEL, settings.JSON_LOGS)
    logger.info("Starting up Account Center BFF...")

    missing = settings.missing_required()
    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    logger.info(f"Logto endpoint: {settings.LOGTO_ENDPOINT}")

    yield

    # Shutdown
    logger.info("Shutting down Account Center BFF...")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Backend for the Logto account center: login, webhooks and SPA hosting",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start) * 1000)
    logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms")
    return response


@app.exception_handler(StarletteHTTPException)
async def json_detail_exception_handler(request: Request, exc: StarletteHTTPException):
    """Send dict details as the response body ({"success": false, "message": ...})."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
    return await http_exception_handler(request, exc)


# Include routers
app.include_router(health.router, prefix=settings.EXT_PREFIX)
app.include_router(auth.router, prefix=settings.EXT_PREFIX)
app.include_router(webhook.router, prefix=settings.EXT_PREFIX)
app.include_router(user_config.router)

# Built account-center SPA; mounted after /user/config.json so the route wins
if os.path.isdir(settings.SPA_DIST_DIR):
    app.mount("/user", StaticFiles(directory=settings.SPA_DIST_DIR, html=True), name="account-center")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
