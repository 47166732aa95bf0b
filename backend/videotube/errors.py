from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """Domain failure carrying the HTTP status it is reported with."""

    default_status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, errors: list[Any] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(status_code=self.default_status_code, detail=self.message)


class ValidationError(ApiError):
    default_status_code = 400
    default_message = "Invalid request"


class ConflictError(ApiError):
    default_status_code = 400
    default_message = "User with email or username already exists"


class NotFoundError(ApiError):
    default_status_code = 404
    default_message = "Not found"


class AuthError(ApiError):
    default_status_code = 401
    default_message = "Unauthorized request"


class InternalError(ApiError):
    default_status_code = 500
    default_message = "Something went wrong"


def error_envelope(status_code: int, message: str, errors: list[Any] | None = None) -> dict[str, object]:
    return {
        "statusCode": status_code,
        "data": None,
        "message": message,
        "success": False,
        "errors": errors or [],
    }


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_envelope(exc.status_code, exc.message, exc.errors)),
        headers=getattr(exc, "headers", None),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.status_code, message),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in {"body", "query", "path"})
    message = f"{location}: {first.get('msg')}" if location else str(first.get("msg") or "Invalid request")
    return JSONResponse(
        status_code=400,
        content=error_envelope(400, message, errors),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_envelope(500, InternalError.default_message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
