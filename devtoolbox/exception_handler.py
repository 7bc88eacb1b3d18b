"""Error taxonomy, HTTP error mapping and logging setup for the snippet service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

LOGGER_NAME = "devtoolbox"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(LOGGER_NAME)


class SnippetError(Exception):
    """Base class for failures reported to API callers."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SnippetError):
    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(SnippetError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(SnippetError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(SnippetError):
    status_code = 404
    default_message = "Snippet not found"


class UpstreamError(SnippetError):
    """Storage or identity backend failed for an infrastructure reason."""

    status_code = 500
    default_message = "Upstream service failure"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure the package logger with a single stream handler."""
    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)

    return package_logger


async def _snippet_error_handler(request: Request, exc: SnippetError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.debug("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        if location:
            fields.append(".".join(location))
    message = "Invalid request body"
    if fields:
        message = f"Invalid request fields: {', '.join(fields)}"
    return JSONResponse(status_code=400, content={"error": message})


def install_exception_handlers(app: FastAPI) -> None:
    """Map service errors to ``{"error": message}`` JSON responses."""
    app.add_exception_handler(SnippetError, _snippet_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)


__all__ = [
    "ForbiddenError",
    "LOGGER_NAME",
    "NotFoundError",
    "SnippetError",
    "UnauthorizedError",
    "UpstreamError",
    "ValidationError",
    "configure_logging",
    "install_exception_handlers",
]
