"""Extraction schema: what the provider must emit and how it is validated."""

from __future__ import annotations

import copy
import logging
from functools import lru_cache
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from ..models.extraction import ExtractionOutput, Suggestion
from .errors import SchemaViolationError

logger = logging.getLogger(__name__)

SCHEMA_NAME = "extraction_result"

# Keywords strict structured-output backends reject
_UNSUPPORTED_KEYWORDS = ("default", "title")


def _strictify(node: Any, property_map: bool = False) -> Any:
    """Require every property and forbid extras, recursively.

    ``property_map`` marks a ``properties`` mapping, whose keys are field
    names rather than schema keywords.
    """
    if isinstance(node, list):
        return [_strictify(item) for item in node]
    if not isinstance(node, dict):
        return node

    result = {}
    for key, value in node.items():
        if not property_map and key in _UNSUPPORTED_KEYWORDS:
            continue
        result[key] = _strictify(value, property_map=not property_map and key == "properties")
    if property_map:
        return result
    if result.get("type") == "object" and "properties" in result:
        result["required"] = list(result["properties"].keys())
        result["additionalProperties"] = False
    return result


@lru_cache(maxsize=1)
def _cached_schema() -> Dict[str, Any]:
    return _strictify(ExtractionOutput.model_json_schema(by_alias=True))


def extraction_json_schema() -> Dict[str, Any]:
    """JSON schema of the flat, nullable output shape, in strict form."""
    return copy.deepcopy(_cached_schema())


def _describe_errors(exc: ValidationError, limit: int = 5) -> List[str]:
    described = []
    for error in exc.errors()[:limit]:
        location = ".".join(str(part) for part in error.get("loc", ()))
        described.append(f"{location or '<root>'}: {error.get('msg')}")
    return described


def validate_extraction(raw: Any) -> ExtractionOutput:
    """Validate provider output as a whole.

    Raises SchemaViolationError when any part of the batch is malformed;
    there is no partial result.
    """
    try:
        return ExtractionOutput.model_validate(raw)
    except ValidationError as exc:
        problems = _describe_errors(exc)
        logger.error(f"Extraction output failed validation: {problems}")
        raise SchemaViolationError(
            "Model output did not match the extraction schema",
            {"errors": problems},
        ) from exc


def parse_extraction(raw: Any) -> Tuple[str, List[Suggestion]]:
    """Validate provider output and convert it to tagged-union suggestions."""
    output = validate_extraction(raw)
    return output.summary, [suggestion.to_suggestion() for suggestion in output.suggestions]


__all__ = ["SCHEMA_NAME", "extraction_json_schema", "validate_extraction", "parse_extraction"]
