"""Typed booking errors and the `{success, data | message}` response envelope."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for every failure the booking layer reports to callers."""

    kind = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed or logically impossible request. User-correctable."""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookingError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingError):
    """The requested interval is taken. Retrying the same dates fails again."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class StoreError(BookingError):
    """The persistence layer failed for infrastructure reasons (timeout, connection)."""

    kind = "store_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class PermissionDenied(BookingError):
    kind = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


def success(data: Any = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True}
    if data is not None:
        payload["data"] = jsonable_encoder(data)
    payload.update(jsonable_encoder(extra))
    return payload


def failure(message: str, kind: str) -> dict[str, Any]:
    return {"success": False, "message": message, "error": kind}


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.warning("store failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.kind))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=failure(message, ValidationError.kind),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("constraint violation on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=failure("Request conflicts with stored data", ConflictError.kind),
    )


_HTTP_KINDS = {
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: PermissionDenied.kind,
    status.HTTP_404_NOT_FOUND: NotFoundError.kind,
    status.HTTP_409_CONFLICT: ConflictError.kind,
}


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _HTTP_KINDS.get(exc.status_code, "error")
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(str(exc.detail), kind),
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Render typed errors, schema errors and constraint violations through the shared envelope."""

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
