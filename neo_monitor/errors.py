"""Error taxonomy and the FastAPI handlers that render it."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging_utils import log_event

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    loc: Optional[list[str | int]] = None
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Standard error response model."""
    code: str
    message: str
    details: Optional[Any] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "code": "VALIDATION_ERROR",
                "message": "start_date must be in YYYY-MM-DD format",
                "details": None,
            }
        }
    }


class AppError(Exception):
    status_code = 500
    code = "APP_ERROR"
    default_message = "Application error"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.code, message=self.message, details=self.details)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation error"


class InvalidTokenError(AppError):
    status_code = 401
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class ExternalApiError(AppError):
    """Upstream NeoWs failure.

    ``upstream`` is the request path only; query strings carry the API key and
    are never stored here.
    """

    status_code = 502
    code = "EXTERNAL_API_ERROR"
    default_message = "Upstream NASA API request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream: str,
        upstream_status: int | None = None,
        transient: bool = False,
    ):
        status = 502
        if upstream_status is not None and 400 <= upstream_status < 500:
            status = upstream_status
        self.upstream = upstream
        self.upstream_status = upstream_status
        self.transient = transient
        super().__init__(
            message,
            status_code=status,
            details={
                "upstream": upstream,
                "upstream_status": upstream_status,
                "transient": transient,
            },
        )


class DbError(AppError):
    status_code = 500
    code = "DB_ERROR"
    default_message = "Database error"


# SQLSTATE codes raised by PostgreSQL drivers
_PG_UNDEFINED_TABLE = "42P01"
_PG_INSUFFICIENT_PRIVILEGE = "42501"


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def db_error_from(exc: SQLAlchemyError) -> DbError:
    """Map a SQLAlchemy exception to a DbError with a stable sub-code."""
    state = _sqlstate(exc)
    text = str(getattr(exc, "orig", exc)).lower()

    if isinstance(exc, IntegrityError) or (state or "").startswith("23"):
        return DbError("Database constraint failed", status_code=409, code="DB_CONSTRAINT")
    if state == _PG_UNDEFINED_TABLE or "no such table" in text or (
        "relation" in text and "does not exist" in text
    ):
        return DbError("Table does not exist", code="DB_TABLE_MISSING")
    if state == _PG_INSUFFICIENT_PRIVILEGE or "permission denied" in text:
        return DbError("Insufficient privilege", code="DB_INSUFFICIENT_PRIVILEGE")
    return DbError(details={"type": type(exc).__name__})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log_event(
            logger,
            "http.error",
            exc.message,
            level="error",
            code=exc.code,
            path=request.url.path,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        ErrorDetail(loc=list(err.get("loc", ())), msg=err.get("msg", ""), type=err.get("type", "")).model_dump()
        for err in exc.errors()
    ]
    body = ErrorResponse(code="VALIDATION_ERROR", message="Invalid request parameters", details=details)
    return JSONResponse(status_code=400, content=body.model_dump())


_HTTP_STATUS_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors raised by Starlette itself, such as unknown paths."""
    code = _HTTP_STATUS_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    body = ErrorResponse(code=code, message=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = ErrorResponse(code="INTERNAL_SERVER_ERROR", message="Internal server error")
    return JSONResponse(status_code=500, content=body.model_dump())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
