"""HTTP API route handlers."""

from . import collections, extract, graphs, system

__all__ = ["collections", "extract", "graphs", "system"]
