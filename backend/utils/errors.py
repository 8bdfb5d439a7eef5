"""Error taxonomy shared by the workflows and the HTTP layer.

Every workflow raises one of the ``LogisticsError`` subclasses below; the
handlers registered by ``register_exception_handlers`` turn them (and any
other failure) into the ``{"success": false, "error": ...}`` body the
frontend expects.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class LogisticsError(Exception):
    """Base class for errors raised by the order/request workflows."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnauthenticatedError(LogisticsError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(LogisticsError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Brak uprawnień"):
        super().__init__(message)


class NotFoundError(LogisticsError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(LogisticsError):
    """Missing or invalid field; the message names the field."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(LogisticsError):
    """Requested transition does not apply to the current state."""

    status_code = status.HTTP_409_CONFLICT


class ApprovalFailedError(LogisticsError):
    """Approval unit failed mid-way and the request was reset to pending."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def logistics_exception_handler(request: Request, exc: LogisticsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} on {request.url.path}: {exc.detail}")
    return error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(loc) for loc in first.get("loc", ()) if loc != "body")
        message = f"Pole {field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Nieprawidłowe dane"
    logger.info(f"Validation error on {request.url.path}: {message}")
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Błąd serwera: {exc}")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LogisticsError, logistics_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
