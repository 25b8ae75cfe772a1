"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and
sets up startup and shutdown events. When run with uvicorn it
initialises Sentry and the database and loads configuration from
``draftwise.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.exception_handlers import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from draftwise import __version__
from draftwise.api.endpoints.health import router as health_router
from draftwise.api.error_handlers import (
    draftwise_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from draftwise.api.routes.analysis import router as analysis_router
from draftwise.api.routes.billing import router as billing_router
from draftwise.api.routes.comments import router as comments_router
from draftwise.api.routes.content import router as content_router
from draftwise.api.routes.stripe_webhooks import router as stripe_webhooks_router
from draftwise.core.config import settings
from draftwise.core.database import get_db_debug_info, init_db
from draftwise.core.exceptions import DraftwiseError
from draftwise.core.observability import init_sentry

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    version=__version__,
    lifespan=lifespan,
)


def _cors_origins() -> list[str]:
    """CORS origins.

    1. In development => allow all ( * ).
    2. Otherwise start from BACKEND_CORS_ORIGINS and add the
       FRONTEND_BASE_URL origin, deduplicated in order.
    """
    if (settings.ENVIRONMENT or "development").lower() == "development":
        return ["*"]
    origins = list(settings.BACKEND_CORS_ORIGINS or [])
    parsed = urlparse(settings.FRONTEND_BASE_URL or "")
    if parsed.scheme and parsed.netloc:
        origins.append(f"{parsed.scheme}://{parsed.netloc}")
    seen: set[str] = set()
    return [o for o in origins if not (o in seen or seen.add(o))]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(DraftwiseError, draftwise_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include routers
app.include_router(health_router)
app.include_router(stripe_webhooks_router)
app.include_router(billing_router)
app.include_router(analysis_router)
app.include_router(content_router)
app.include_router(comments_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to the {settings.PROJECT_NAME} API"}


@app.get("/debug/db")
async def db_debug():
    """Return non-sensitive DB diagnostics (development only)."""
    if (settings.ENVIRONMENT or "development").lower() != "development":
        return {"ok": False, "message": "disabled in non-development env"}
    return get_db_debug_info()
