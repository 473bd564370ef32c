"""FastAPI middleware for error handling."""

from .error_handlers import (
    domain_exception_handler,
    http_exception_handler,
    internal_exception_handler,
    register_error_handlers,
    status_for,
    validation_exception_handler,
)

__all__ = [
    "register_error_handlers",
    "status_for",
    "validation_exception_handler",
    "http_exception_handler",
    "domain_exception_handler",
    "internal_exception_handler",
]
