"""Map analytics exceptions to structured JSON error responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clinic_analytics.application.services.access_guard_service import (
    RoleNotAuthorizedError,
    UnknownRoleAuthorizationError,
)
from clinic_analytics.domain.errors import (
    AggregationFailedError,
    AnalyticsValidationError,
    NoDeliveriesSucceededError,
    UnsupportedFormatError,
)
from clinic_analytics.infrastructure.http.auth_guard import (
    InvalidAuthTokenError,
    MissingAuthTokenError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[Exception], int] = {
    AnalyticsValidationError: 422,
    UnsupportedFormatError: 400,
    MissingAuthTokenError: 401,
    InvalidAuthTokenError: 401,
    RoleNotAuthorizedError: 403,
    UnknownRoleAuthorizationError: 403,
    AggregationFailedError: 503,
    NoDeliveriesSucceededError: 502,
}


def error_body(*, category: str, message: str) -> dict[str, dict[str, str]]:
    return {"error": {"category": category, "message": message}}


async def _handle_known_error(request: Request, error: Exception) -> JSONResponse:
    status_code = next(
        _STATUS_BY_ERROR[cls] for cls in type(error).__mro__ if cls in _STATUS_BY_ERROR
    )
    category = str(getattr(error, "category", "internal_error"))
    logger.info(
        "request_rejected path=%s status=%s category=%s",
        request.url.path,
        status_code,
        category,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_body(category=category, message=str(error)),
    )


async def _handle_request_validation(
    request: Request,
    error: RequestValidationError,
) -> JSONResponse:
    first = error.errors()[0] if error.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid request"))
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=422,
        content=error_body(category="validation_error", message=message),
    )


async def _handle_unexpected(request: Request, error: Exception) -> JSONResponse:
    logger.exception("request_failed path=%s", request.url.path, exc_info=error)
    return JSONResponse(
        status_code=500,
        content=error_body(category="internal_error", message="internal server error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install one handler per error category on `app`."""

    for error_type in _STATUS_BY_ERROR:
        app.add_exception_handler(error_type, _handle_known_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)
