"""Domain exceptions shared by the store, graph model and extraction pipeline."""

from __future__ import annotations

from typing import Any, Dict, Optional


class ContextoryError(Exception):
    """Base class for every error raised by the service layer."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NoCredentialError(ContextoryError):
    """No access credential is configured for the chosen text-generation provider."""


class GenerationError(ContextoryError):
    """The text-generation provider failed (HTTP error, timeout, unreadable body)."""


class SchemaViolationError(ContextoryError):
    """Collaborator output did not satisfy the extraction schema."""


class EntityWriteError(ContextoryError):
    """A single persistent-store write failed."""


class InvalidReferenceError(ContextoryError):
    """A node, edge or field reference points at something that does not exist."""


class NotFoundError(ContextoryError):
    """The requested collection, record or graph does not exist."""


__all__ = [
    "ContextoryError",
    "NoCredentialError",
    "GenerationError",
    "SchemaViolationError",
    "EntityWriteError",
    "InvalidReferenceError",
    "NotFoundError",
]
