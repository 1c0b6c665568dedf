"""Translate service exceptions into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from securechat.core.errors import SecureChatError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_DETAIL = "Internal server error"


async def secure_chat_error_handler(request: Request, exc: SecureChatError) -> JSONResponse:
    """Return the client-facing payload of an expected failure."""
    logger.debug("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log an unexpected failure in full and hide its details from the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_DETAIL, "error": "InternalError"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SecureChatError, secure_chat_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unexpected_error_handler)
