# api/errors.py
"""Mapping of application errors to HTTP responses."""
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from core.exceptions import ChatRAGError

logger = logging.getLogger(settings.LOGGER_NAME)

SERVICE_UNAVAILABLE = "Service temporarily unavailable"
INTERNAL_ERROR = "Internal server error"


def public_message(exc: Exception) -> str:
    """Message safe to show a client: the original one for 4xx errors only."""
    if isinstance(exc, ChatRAGError):
        if exc.status_code < 500:
            return exc.message
        if exc.status_code == 503:
            return SERVICE_UNAVAILABLE
    return INTERNAL_ERROR


def _error_body(request: Request, status_code: int, error_code: str, message: str) -> dict:
    return {
        "statusCode": status_code,
        "error_code": error_code,
        "message": message,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def chat_rag_error_handler(request: Request, exc: ChatRAGError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.error_code.value, public_message(exc))
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_error_body(request, 500, "INTERNAL_ERROR", INTERNAL_ERROR)
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatRAGError, chat_rag_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
