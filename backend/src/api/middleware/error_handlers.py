"""FastAPI exception handlers producing the uniform error body.

Every error response is ``{"error": <code>, "message": <text>, "detail": <obj|null>}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Type

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...services.errors import (
    ContextoryError,
    EntityWriteError,
    GenerationError,
    InvalidReferenceError,
    NoCredentialError,
    NotFoundError,
    SchemaViolationError,
)

logger = logging.getLogger(__name__)

DEFAULT_ERRORS: Dict[int, Tuple[str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("validation_error", "Invalid request payload"),
    status.HTTP_404_NOT_FOUND: ("not_found", "Resource not found"),
    status.HTTP_405_METHOD_NOT_ALLOWED: ("method_not_allowed", "Method not allowed"),
    status.HTTP_422_UNPROCESSABLE_ENTITY: ("invalid_reference", "Invalid reference"),
    status.HTTP_500_INTERNAL_SERVER_ERROR: ("internal_error", "Internal server error"),
    status.HTTP_502_BAD_GATEWAY: ("generation_error", "Text generation failed"),
}

# Most specific first
DOMAIN_ERRORS: Tuple[Tuple[Type[ContextoryError], int, str], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (InvalidReferenceError, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_reference"),
    (NoCredentialError, status.HTTP_400_BAD_REQUEST, "no_credential"),
    (SchemaViolationError, status.HTTP_502_BAD_GATEWAY, "schema_violation"),
    (GenerationError, status.HTTP_502_BAD_GATEWAY, "generation_error"),
    (EntityWriteError, status.HTTP_500_INTERNAL_SERVER_ERROR, "entity_write_error"),
)


def _normalize_error(
    status_code: int, detail: Any
) -> Tuple[str, str, Optional[Dict[str, Any]]]:
    default_error, default_message = DEFAULT_ERRORS.get(
        status_code, DEFAULT_ERRORS[status.HTTP_500_INTERNAL_SERVER_ERROR]
    )
    if isinstance(detail, dict):
        error = detail.get("error", default_error)
        message = detail.get("message", default_message)
        detail_payload = detail.get("detail")
        if detail_payload is None:
            remainder = {
                k: v for k, v in detail.items() if k not in {"error", "message", "detail"}
            }
            detail_payload = remainder or None
        return error, message, detail_payload
    if isinstance(detail, str) and detail:
        return default_error, detail, None
    return default_error, default_message, None


def _response(status_code: int, detail: Any) -> JSONResponse:
    error, message, extra = _normalize_error(status_code, detail)
    return JSONResponse(
        status_code=status_code, content={"error": error, "message": message, "detail": extra}
    )


def status_for(exc: ContextoryError) -> Tuple[int, str]:
    """HTTP status and error code for a domain error."""
    for error_type, status_code, code in DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            return status_code, code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # errors() may carry exception objects in ``ctx``; keep the serializable parts
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    detail = {"detail": {"errors": errors}}
    return _response(status.HTTP_400_BAD_REQUEST, detail)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _response(exc.status_code, exc.detail)


async def domain_exception_handler(request: Request, exc: ContextoryError) -> JSONResponse:
    status_code, code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return _response(
        status_code,
        {"error": code, "message": exc.message, "detail": exc.details or None},
    )


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.args[0] if exc.args else None)


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(ContextoryError, domain_exception_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "register_error_handlers",
    "status_for",
    "validation_exception_handler",
    "http_exception_handler",
    "domain_exception_handler",
    "internal_exception_handler",
]
