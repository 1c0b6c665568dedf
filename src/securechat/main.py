"""Main entry point for the SecureChat application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from securechat.api import (
    auth_router,
    files_download_router,
    files_router,
    friendships_router,
    messages_router,
    realtime_router,
    users_router,
)
from securechat.api.errors import register_exception_handlers
from securechat.core.logging_config import configure_logging
from securechat.core.settings import settings
from securechat.db.session import create_tables

logger = logging.getLogger(__name__)

DESCRIPTION = "Friendship-gated end-to-end encrypted messaging API"

# Initialize FastAPI app
app = FastAPI(
    title=f"{settings.app_name} API",
    description=DESCRIPTION,
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

register_exception_handlers(app)

# Include API routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(friendships_router, prefix="/api")
app.include_router(messages_router, prefix="/api")
app.include_router(files_router, prefix="/api")
app.include_router(files_download_router)
app.include_router(realtime_router)


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    create_tables()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": f"{settings.app_name} API",
        "version": settings.app_version,
        "description": DESCRIPTION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("securechat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
