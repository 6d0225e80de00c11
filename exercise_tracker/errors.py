"""Fallback and error middleware producing plain-text responses.

Route handlers report anticipated failures as JSON ``{"error": ...}``
bodies with a 200 status. Everything that escapes a handler ends up here
and is answered with a non-200 status and a ``text/plain`` body.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "not found"


def first_field_message(exc: ValidationError | RequestValidationError) -> str:
    """Return the message of the first failing field."""
    errors = exc.errors()
    if not errors:
        return "validation failed"
    return errors[0].get("msg", "invalid value")


async def _http_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    # unknown paths and unsupported methods on known paths both count as unmatched
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=status.HTTP_404_NOT_FOUND)
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


async def _validation_error(
    request: Request, exc: ValidationError | RequestValidationError
) -> PlainTextResponse:
    message = first_field_message(exc)
    logger.info("%s %s failed schema validation: %s", request.method, request.url.path, message)
    return PlainTextResponse(message, status_code=status.HTTP_400_BAD_REQUEST)


async def _unhandled_error(request: Request, exc: Exception) -> PlainTextResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) or "Internal Server Error"
    return PlainTextResponse(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def install_error_handlers(app: FastAPI) -> None:
    """Register the plain-text error channel on ``app``."""
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)
