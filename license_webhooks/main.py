"""Main FastAPI application entry point."""

import logging
import os

# Rejected deliveries are only visible in the logs, so logging is set up before the
# verifier and router modules create their loggers. Read from the environment because
# Settings imports the verifier.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE_PATH = os.getenv("LOG_FILE_PATH")

handlers = [logging.StreamHandler()]

# Keeps an audit trail of accepted and rejected deliveries beyond the container's stdout
if LOG_FILE_PATH:
    handlers.append(logging.FileHandler(LOG_FILE_PATH, mode="a"))

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=handlers,
    force=True,  # uvicorn installs its own handlers first
)

logger = logging.getLogger(__name__)
logger.info(f"Logging configured: level={LOG_LEVEL}, file={LOG_FILE_PATH or 'stdout only'}")

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from license_webhooks.config import settings
from license_webhooks.routers.api import webhooks as api_webhooks
from license_webhooks.schemas import HealthStatus
from license_webhooks.security import register_webhook_exception_handler
from license_webhooks.utils.sanitization import sanitize_for_log


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Application lifespan manager."""
    options = settings.webhook_options()
    logger.info(f"Starting {settings.app_name}, receiving webhooks at {settings.webhook_path}")
    if not options.secret:
        logger.error(
            "No webhook secret configured (LICENSE_MANAGEMENT_WEBHOOK_SECRET); "
            "all deliveries will be rejected"
        )
    if options.secondary_secret:
        logger.info("Secondary webhook secret configured, secret rotation in progress")
    logger.info(f"Webhook timestamp tolerance: {int(options.tolerance.total_seconds())}s")

    yield

    logger.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

register_webhook_exception_handler(app)


# Verification failures never reach this handler; anything here is a server fault
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log a server fault without echoing request headers or body."""
    logger.exception(
        f"Unhandled exception while handling {request.method} {sanitize_for_log(request.url.path)} "
        f"from {request.client.host if request.client else 'unknown'}: {exc!r}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# Webhook routes carry their own signature verification
app.include_router(api_webhooks.router)


@app.get("/health", response_model=HealthStatus)
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version, "app_name": settings.app_name}
