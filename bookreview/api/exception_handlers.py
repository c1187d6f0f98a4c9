"""Global exception handlers that map domain exceptions to HTTP responses."""

import logging
import traceback

from fastapi import Request, status
from fastapi.responses import JSONResponse

from bookreview.core.config import settings
from bookreview.errors import (
    DUPLICATE_RESOURCE,
    FORBIDDEN,
    INVALID_CREDENTIALS,
    INVALID_OR_EXPIRED_TOKEN,
    NOT_FOUND,
    SERVER_ERROR,
    UNAUTHORIZED,
    VALIDATION_ERROR,
    DomainValidationError,
    DuplicateResourceError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    UnauthorizedError,
)
from bookreview.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    detail: str,
    code: str,
    headers: dict[str, str] | None = None,
    tb: str | None = None,
) -> JSONResponse:
    """Return a standardized error response with detail and machine-readable code."""
    body = ErrorResponse(detail=detail, code=code, traceback=tb)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def domain_validation_error_handler(
    _request: Request, exc: DomainValidationError
) -> JSONResponse:
    code = (
        INVALID_OR_EXPIRED_TOKEN
        if isinstance(exc, InvalidOrExpiredTokenError)
        else VALIDATION_ERROR
    )
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), code)


def duplicate_resource_error_handler(
    _request: Request, exc: DuplicateResourceError
) -> JSONResponse:
    return _error_response(
        status.HTTP_409_CONFLICT,
        str(exc),
        DUPLICATE_RESOURCE,
    )


def not_found_error_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(
        status.HTTP_404_NOT_FOUND,
        str(exc),
        NOT_FOUND,
    )


def forbidden_error_handler(_request: Request, exc: ForbiddenError) -> JSONResponse:
    return _error_response(
        status.HTTP_403_FORBIDDEN,
        str(exc),
        FORBIDDEN,
    )


def unauthorized_error_handler(_request: Request, exc: UnauthorizedError) -> JSONResponse:
    code = INVALID_CREDENTIALS if isinstance(exc, InvalidCredentialsError) else UNAUTHORIZED
    return _error_response(
        status.HTTP_401_UNAUTHORIZED,
        str(exc),
        code,
        headers={"WWW-Authenticate": "Bearer"},
    )


def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    tb = None
    if not settings.is_production:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Server error",
        SERVER_ERROR,
        tb=tb,
    )


def register_exception_handlers(app):
    """Register domain exception handlers on the FastAPI app."""
    app.add_exception_handler(DomainValidationError, domain_validation_error_handler)
    app.add_exception_handler(DuplicateResourceError, duplicate_resource_error_handler)
    app.add_exception_handler(ForbiddenError, forbidden_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(UnauthorizedError, unauthorized_error_handler)
    app.add_exception_handler(Exception, server_error_handler)
